from rest_framework import viewsets, mixins, filters
from rest_framework.generics import ListAPIView, get_object_or_404
from rest_framework.permissions import AllowAny
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.utils.pagination import StandardResultsSetPagination
from apps.utils.utils import now
from .models import Event, Photo
from .serializers import EventSerializer, PhotoSerializer, PhotoDetailSerializer

UPCOMING_EVENTS_LIMIT = 6


def visible_events():
    return Event.objects.filter(
        status=Event.Status.APPROVED,
        is_published=True,
    )


class EventViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Public event listing for buyers.
    """
    serializer_class = EventSerializer
    permission_classes = [AllowAny]
    filter_backends = [filters.SearchFilter]
    search_fields = ['name', 'location']

    def get_queryset(self):
        return visible_events().prefetch_related('classes')

    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        """
        Next events that have not started yet, soonest first.
        """
        events = (
            visible_events()
            .filter(start_time__gt=now())
            .prefetch_related('classes')
            .order_by('start_time')[:UPCOMING_EVENTS_LIMIT]
        )
        return Response(self.get_serializer(events, many=True).data)

    def retrieve(self, request, *args, **kwargs):
        event = self.get_object()
        photo_classes = (
            event.photos.order_by('class_name')
            .values_list('class_name', flat=True)
            .distinct()
        )
        return Response({
            "event": self.get_serializer(event).data,
            "photoClasses": list(photo_classes),
        })


class EventClassPhotosView(ListAPIView):
    """
    Photos of one event + class, optionally narrowed by bib number.
    GET /events/<id>/classes/<class_name>/photos/?startNo=12
    """
    serializer_class = PhotoSerializer
    permission_classes = [AllowAny]
    pagination_class = StandardResultsSetPagination

    def get_event(self):
        if not hasattr(self, '_event'):
            self._event = get_object_or_404(visible_events(), pk=self.kwargs['event_id'])
        return self._event

    def get_queryset(self):
        event = self.get_event()
        qs = (
            Photo.objects.filter(event=event, class_name=self.kwargs['class_name'])
            .select_related('event')
            .prefetch_related('recaps')
            .order_by('start_no', 'id')
        )
        start_no = self.request.query_params.get('startNo')
        if start_no:
            qs = qs.filter(start_no__icontains=start_no)
        return qs

    def list(self, request, *args, **kwargs):
        response = super().list(request, *args, **kwargs)
        start_numbers = (
            Photo.objects.filter(event=self.get_event(), class_name=self.kwargs['class_name'])
            .order_by('start_no')
            .values_list('start_no', flat=True)
            .distinct()
        )
        response.data['startNumbers'] = list(start_numbers)
        return response


class PhotoViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = PhotoDetailSerializer
    permission_classes = [AllowAny]

    def get_queryset(self):
        return (
            Photo.objects.filter(event__in=visible_events())
            .select_related('event')
            .prefetch_related('recaps')
        )
