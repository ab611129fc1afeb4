from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import User
from accounts.serializers import UserSerializer
from commissions.exceptions import CommissionError, InvalidCommissionTransition
from commissions.filters import CommissionFilter
from commissions.models import Commission
from commissions.permissions import IsPlatformAdmin, IsVehicleOwner
from commissions.serializers import (
    CommissionRejectSerializer,
    CommissionReviewSerializer,
    CommissionSerializer,
    CommissionStatusSerializer,
    CommissionSubmitSerializer,
    CommissionSummarySerializer,
    OwnerCommissionSummarySerializer,
    OwnerSuspendSerializer,
)
from commissions.services import engine
from commissions.services.summaries import commission_summary, owner_summaries


def commission_error_response(exc: CommissionError) -> Response:
    code = status.HTTP_409_CONFLICT if isinstance(exc, InvalidCommissionTransition) else status.HTTP_400_BAD_REQUEST
    return Response({"detail": str(exc)}, status=code)


class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CommissionSerializer
    permission_classes = [permissions.IsAuthenticated, IsVehicleOwner]
    filterset_class = CommissionFilter
    ordering_fields = ["created_at", "commission_amount"]

    def get_queryset(self):
        user = self.request.user
        queryset = Commission.objects.select_related("owner", "booking", "verified_by")
        if user.is_platform_admin:
            return queryset
        return queryset.filter(owner=user)

    def _admin_only(self, request):
        if not request.user.is_platform_admin:
            return Response({"detail": "Not permitted."}, status=status.HTTP_403_FORBIDDEN)
        return None

    @action(detail=False, methods=["get"])
    def summary(self, request):
        summary = commission_summary(self.filter_queryset(self.get_queryset()))
        return Response(CommissionSummarySerializer(summary).data)

    @action(detail=False, methods=["get"])
    def owners(self, request):
        denied = self._admin_only(request)
        if denied:
            return denied
        rows = owner_summaries(self.filter_queryset(self.get_queryset()))
        return Response(OwnerCommissionSummarySerializer(rows, many=True).data)

    @action(detail=False, methods=["get", "post"])
    def backfill(self, request):
        """GET lists confirmed bookings without a commission; POST creates the missing rows."""
        denied = self._admin_only(request)
        if denied:
            return denied
        result = engine.backfill_missing_commissions(dry_run=request.method == "GET")
        return Response(
            {
                "missing": result["missing"],
                "created": CommissionSerializer(result["created"], many=True).data,
                "failed": result["failed"],
            }
        )

    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        commission = self.get_object()
        serializer = CommissionSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = engine.submit_payment(commission, owner=request.user, **serializer.validated_data)
        except CommissionError as exc:
            return commission_error_response(exc)
        return Response(CommissionSerializer(commission).data)

    @action(detail=True, methods=["post"])
    def verify(self, request, pk=None):
        denied = self._admin_only(request)
        if denied:
            return denied
        commission = self.get_object()
        serializer = CommissionReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = engine.verify_commission(
                commission, admin=request.user, notes=serializer.validated_data["notes"]
            )
        except CommissionError as exc:
            return commission_error_response(exc)
        return Response(CommissionSerializer(commission).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        denied = self._admin_only(request)
        if denied:
            return denied
        commission = self.get_object()
        serializer = CommissionRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = engine.reject_commission(
                commission, admin=request.user, notes=serializer.validated_data["notes"]
            )
        except CommissionError as exc:
            return commission_error_response(exc)
        return Response(CommissionSerializer(commission).data)

    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):
        denied = self._admin_only(request)
        if denied:
            return denied
        commission = self.get_object()
        serializer = CommissionStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            commission = engine.update_status(
                commission,
                serializer.validated_data["status"],
                admin=request.user,
                notes=serializer.validated_data["notes"],
            )
        except CommissionError as exc:
            return commission_error_response(exc)
        return Response(CommissionSerializer(commission).data)


class OwnerSuspendView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsPlatformAdmin]

    def post(self, request, owner_id):
        owner = get_object_or_404(User, pk=owner_id)
        serializer = OwnerSuspendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            engine.suspend_owner(owner, admin=request.user, reason=serializer.validated_data["reason"])
        except CommissionError as exc:
            return commission_error_response(exc)
        return Response(UserSerializer(owner).data)


class OwnerUnsuspendView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsPlatformAdmin]

    def post(self, request, owner_id):
        owner = get_object_or_404(User, pk=owner_id)
        engine.unsuspend_owner(owner)
        return Response(UserSerializer(owner).data)
