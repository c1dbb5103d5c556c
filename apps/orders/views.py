from django.http import FileResponse
from django.db.models import Prefetch
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import IsAdmin, IsSuperAdmin
from apps.catalog.services import CatalogService
from apps.utils.exceptions import NotFound
from apps.utils.pagination import StandardResultsSetPagination
from apps.utils.throttle import CheckoutRateThrottle
from .filters import TransactionFilter
from .models import Order, OrderItem, OrderTimeline
from .serializers import (
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    TransactionSerializer,
)
from .services import OrderService


class OrderViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Guest checkout plus operator tooling.

    POST   /orders/                              create (public)
    GET    /orders/<id>/                         detail (public)
    PUT    /orders/<id>/status/                  manual override (super admin)
    POST   /orders/<id>/send-email/              resend receipt (operator)
    GET    /orders/transactions/                 listing (operator)
    GET    /orders/dashboard/                    counts, revenue, balance (operator)
    GET    /orders/<id>/items/<index>/download/  purchased file (paid orders)
    """
    serializer_class = OrderSerializer
    lookup_value_regex = r'\d+'
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action == 'update_status':
            # Manual settlement credits balances: super admins only
            return [IsAuthenticated(), IsSuperAdmin()]
        if self.action in ('send_email', 'transactions', 'dashboard'):
            return [IsAuthenticated(), IsAdmin()]
        return [AllowAny()]

    def get_throttles(self):
        if self.action == 'create':
            return [CheckoutRateThrottle()]
        return super().get_throttles()

    def get_queryset(self):
        items = OrderItem.objects.select_related('photo')
        return Order.objects.prefetch_related(Prefetch('items', queryset=items))

    def create(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order, skipped = OrderService.create_order(
            email=serializer.validated_data['email'],
            whatsapp=serializer.validated_data['whatsapp'],
            items=serializer.to_cart_lines(),
        )

        return Response({
            "id": order.id,
            "email": order.email,
            "totalPrice": order.total_price,
            "status": order.status,
            "skippedItems": skipped,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['put'], url_path='status')
    def update_status(self, request, pk=None):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order, changed = OrderService.apply_status(
            pk,
            serializer.validated_data['status'],
            source=OrderTimeline.Source.OPERATOR,
            actor=request.user,
            note=serializer.validated_data['note'],
        )
        return Response({
            "message": "Status updated" if changed else "Status unchanged",
            "status": order.status,
            "changed": changed,
        })

    @action(detail=True, methods=['post'], url_path='send-email')
    def send_email(self, request, pk=None):
        delivery = OrderService.send_receipt(pk)
        return Response({
            "message": "Email sent",
            "recipient": delivery.recipient,
            "messageId": delivery.message_id,
        })

    @action(detail=False, methods=['get'])
    def transactions(self, request):
        qs = (
            self.get_queryset()
            .prefetch_related('timeline')
            .order_by('-created_at')
        )
        if not request.user.is_super_admin:
            # Plain admins only see sales of their own photos
            qs = qs.filter(CatalogService.owned_by(request.user, "items__photo__")).distinct()

        qs = TransactionFilter(request.query_params, queryset=qs, request=request).qs

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(TransactionSerializer(page, many=True).data)
        return Response(TransactionSerializer(qs, many=True).data)

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        stats = OrderService.dashboard(request.user)
        return Response({
            "totalEvents": stats['total_events'],
            "totalPhotos": stats['total_photos'],
            "totalOrders": stats['total_orders'],
            "totalRevenue": stats['total_revenue'],
            "userBalance": stats['balance'],
            "recentOrders": OrderSerializer(stats['recent_orders'], many=True).data,
        })

    @action(detail=True, methods=['get'], url_path=r'items/(?P<index>\d+)/download')
    def download(self, request, pk=None, index=None):
        order = self.get_object()
        if order.status != Order.Status.SUCCESS:
            raise PermissionDenied("Order has not been paid.")

        items = list(order.items.all())
        index = int(index)
        if index >= len(items):
            raise NotFound("Order item not found.")

        item = items[index]
        asset = CatalogService.resolve_variant_asset(item.photo, item.variant, label=item.snap_photo_start_no)
        if asset is None:
            raise NotFound("File is no longer available.")

        try:
            handle = asset.file.open('rb')
        except OSError:
            raise NotFound("File is no longer available.")
        return FileResponse(handle, as_attachment=True, filename=asset.filename)
