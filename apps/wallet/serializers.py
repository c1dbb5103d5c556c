from rest_framework import serializers
from .models import WithdrawalRequest, BalanceEntry


class WithdrawalRequestSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, coerce_to_string=False, read_only=True)
    bankName = serializers.CharField(source='bank_name', read_only=True)
    accountNumber = serializers.CharField(source='account_number', read_only=True)
    accountName = serializers.CharField(source='account_name', read_only=True)
    adminNotes = serializers.CharField(source='admin_notes', read_only=True)
    processedAt = serializers.DateTimeField(source='processed_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = WithdrawalRequest
        fields = [
            'id', 'amount', 'bankName', 'accountNumber', 'accountName',
            'status', 'adminNotes', 'processedAt', 'createdAt',
        ]


class WithdrawalAdminSerializer(WithdrawalRequestSerializer):
    """
    Super admin view, includes the requesting account.
    """
    user = serializers.SerializerMethodField()

    class Meta(WithdrawalRequestSerializer.Meta):
        fields = WithdrawalRequestSerializer.Meta.fields + ['user']

    def get_user(self, obj):
        return {"id": obj.account_id, "name": obj.account.name, "email": obj.account.email}


class WithdrawalCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=1)
    bankName = serializers.CharField(max_length=100)
    accountNumber = serializers.CharField(max_length=50)
    accountName = serializers.CharField(max_length=255)


class WithdrawalDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class BalanceEntrySerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, coerce_to_string=False)

    class Meta:
        model = BalanceEntry
        fields = ['id', 'kind', 'amount', 'order', 'withdrawal', 'created_at']
