from django.db.models import Q
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from bookings.exceptions import BookingError, InvalidTransition, OwnerSuspendedError
from bookings.models import Booking
from bookings.serializers import BookingCancelSerializer, BookingCreateSerializer, BookingSerializer
from bookings.services import settlement


def booking_error_response(exc: BookingError) -> Response:
    if isinstance(exc, OwnerSuspendedError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidTransition):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


class BookingViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "vehicle"]
    ordering_fields = ["start_date", "created_at"]

    def get_queryset(self):
        user = self.request.user
        queryset = Booking.objects.select_related("renter", "vehicle", "vehicle__owner").prefetch_related(
            "payments"
        )
        if user.is_platform_admin:
            return queryset
        return queryset.filter(Q(renter=user) | Q(vehicle__owner=user))

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            booking = settlement.create_booking(renter=request.user, **serializer.validated_data)
        except BookingError as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def _run_transition(self, request, func, **kwargs):
        booking = self.get_object()
        try:
            booking = func(booking, actor=request.user, **kwargs)
        except BookingError as exc:
            return booking_error_response(exc)
        booking.refresh_from_db()
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        return self._run_transition(request, settlement.confirm_booking)

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        return self._run_transition(request, settlement.start_rental)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        return self._run_transition(request, settlement.complete_rental)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run_transition(request, settlement.cancel_booking, reason=serializer.validated_data["reason"])
