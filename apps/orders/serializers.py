from rest_framework import serializers

from apps.catalog.services import CatalogService
from .models import Order, OrderItem, OrderTimeline


class CartLineSerializer(serializers.Serializer):
    photoId = serializers.IntegerField(min_value=1)
    variant = serializers.IntegerField(min_value=1, required=False, default=1)


class OrderCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    whatsapp = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")
    items = CartLineSerializer(many=True, allow_empty=True)

    def to_cart_lines(self):
        return [
            {"photo_id": line["photoId"], "variant": line["variant"]}
            for line in self.validated_data["items"]
        ]


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class OrderItemSerializer(serializers.ModelSerializer):
    photoId = serializers.IntegerField(source='photo_id', read_only=True)
    photoUrl = serializers.CharField(source='snap_photo_url', read_only=True)
    startNo = serializers.CharField(source='snap_photo_start_no', read_only=True)
    eventName = serializers.CharField(source='snap_event_name', read_only=True)
    className = serializers.CharField(source='snap_photo_class', read_only=True)
    mainPhotoUrl = serializers.CharField(source='snap_photo_url', read_only=True)
    recapUrl = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'photoId', 'variant', 'price', 'photoUrl', 'startNo', 'eventName', 'className', 'recapUrl', 'mainPhotoUrl']

    def get_recapUrl(self, obj):
        asset = CatalogService.resolve_variant_asset(obj.photo, obj.variant)
        return asset.url if asset else None


class OrderTimelineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTimeline
        fields = ['status', 'source', 'note', 'timestamp']


class OrderSerializer(serializers.ModelSerializer):
    totalPrice = serializers.IntegerField(source='total_price', read_only=True)
    paidAt = serializers.DateTimeField(source='paid_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'email', 'whatsapp', 'totalPrice', 'status', 'status_display',
            'paidAt', 'createdAt', 'items',
        ]


class TransactionSerializer(OrderSerializer):
    """
    Operator listing. Adds gateway linkage and history.
    """
    gatewayReference = serializers.CharField(source='gateway_reference', read_only=True)
    timeline = OrderTimelineSerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ['gatewayReference', 'timeline']
