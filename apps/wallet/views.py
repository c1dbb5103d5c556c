from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsAdmin, IsSuperAdmin
from apps.utils.pagination import StandardResultsSetPagination
from .models import WithdrawalRequest
from .serializers import (
    BalanceEntrySerializer,
    WithdrawalAdminSerializer,
    WithdrawalCreateSerializer,
    WithdrawalDecisionSerializer,
    WithdrawalRequestSerializer,
)
from .services import WithdrawalService


class BalanceView(APIView):
    """
    GET /wallet/balance/
    Current balance, what is still withdrawable, recent movements and requests.
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        user = request.user
        user.refresh_from_db(fields=['balance'])

        withdrawals = WithdrawalRequest.objects.filter(account=user)
        entries = user.balance_entries.all()[:20]

        return Response({
            "balance": user.balance,
            "availableBalance": WithdrawalService.available_balance(user),
            "withdrawals": WithdrawalRequestSerializer(withdrawals, many=True).data,
            "entries": BalanceEntrySerializer(entries, many=True).data,
        })


class WithdrawalViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Own requests (list/create) for any operator; review actions for super admins.
    """
    serializer_class = WithdrawalRequestSerializer
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action in ('all', 'approve', 'reject'):
            return [IsAuthenticated(), IsSuperAdmin()]
        return [IsAuthenticated(), IsAdmin()]

    def get_queryset(self):
        if self.action == 'all':
            qs = WithdrawalRequest.objects.select_related('account')
            status_filter = self.request.query_params.get('status')
            if status_filter:
                qs = qs.filter(status=status_filter)
            return qs
        return WithdrawalRequest.objects.filter(account=self.request.user)

    def get_serializer_class(self):
        if self.action == 'all':
            return WithdrawalAdminSerializer
        return WithdrawalRequestSerializer

    def create(self, request):
        serializer = WithdrawalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        withdrawal = WithdrawalService.request_withdrawal(
            account=request.user,
            amount=data['amount'],
            bank_name=data['bankName'],
            account_number=data['accountNumber'],
            account_name=data['accountName'],
        )
        return Response(WithdrawalRequestSerializer(withdrawal).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def all(self, request):
        return self.list(request)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        serializer = WithdrawalDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        withdrawal = WithdrawalService.approve(pk, request.user, serializer.validated_data['notes'])
        return Response({
            "message": "Withdrawal approved",
            "withdrawal": WithdrawalRequestSerializer(withdrawal).data,
        })

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        serializer = WithdrawalDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        withdrawal = WithdrawalService.reject(pk, request.user, serializer.validated_data['notes'])
        return Response({
            "message": "Withdrawal rejected",
            "withdrawal": WithdrawalRequestSerializer(withdrawal).data,
        })
