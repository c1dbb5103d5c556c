from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import BalanceView, WithdrawalViewSet

router = DefaultRouter()
router.register(r'withdrawals', WithdrawalViewSet, basename='withdrawals')

urlpatterns = [
    path('balance/', BalanceView.as_view(), name='wallet-balance'),
    path('', include(router.urls)),
]
