from django.urls import path
from .views import CreateTokenView, MidtransNotificationView

urlpatterns = [
    path('create-token/', CreateTokenView.as_view(), name='payment-create-token'),
    path('notification/', MidtransNotificationView.as_view(), name='payment-notification'),
]
