from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import EventViewSet, EventClassPhotosView, PhotoViewSet

router = DefaultRouter()
router.register(r"events", EventViewSet, basename="event")
router.register(r"photos", PhotoViewSet, basename="photo")

urlpatterns = [
    path(
        "events/<int:event_id>/classes/<str:class_name>/photos/",
        EventClassPhotosView.as_view(),
        name="event-class-photos",
    ),
    path("", include(router.urls)),
]
