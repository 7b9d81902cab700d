# api/views.py
import logging

import pandas as pd
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.response import Response

from algorithms.stats import waitlist_statistics
from api.serializers import (
    DonorOrganSerializer,
    HypotheticalDonorSerializer,
    MatchSerializer,
    NotificationSerializer,
    RankedCandidateSerializer,
    RecipientSerializer,
    RunMatchingSerializer,
)
from notifications.models import Notification
from notifications.rules import check_notification_rules
from waitlist.exceptions import EngineError, InvalidDonor, NotFoundError
from waitlist.models import DonorOrgan, Match, Recipient
from waitlist.services import recompute_priority, run_matching, waitlist_export

logger = logging.getLogger(__name__)


def engine_error_response(exc):
    """Map engine failures onto HTTP responses"""
    if isinstance(exc, NotFoundError):
        return Response({'detail': str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, InvalidDonor):
        return Response({'detail': str(exc)}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    return Response({'detail': str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


def matching_response(outcome):
    donor = outcome.donor
    return {
        'success': True,
        'simulation_mode': outcome.simulation_mode,
        'donor': {
            'id': donor.id,
            'organ_type': donor.organ_type,
            'blood_type': donor.blood_type,
            'hla_typing': donor.hla_typing,
        },
        'matches': RankedCandidateSerializer(outcome.ranked, many=True).data,
        'total_matches': outcome.total_matches,
        'matches_created': outcome.matches_created,
    }


class RecipientViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.UpdateModelMixin,
                       viewsets.GenericViewSet):
    """API endpoint for viewing and updating waitlisted recipients"""
    queryset = Recipient.objects.all()
    serializer_class = RecipientSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        organ = self.request.query_params.get('organ')
        if organ and organ != 'all':
            queryset = queryset.filter(organ_needed=organ)
        status_filter = self.request.query_params.get('status')
        if status_filter and status_filter != 'all':
            queryset = queryset.filter(waitlist_status=status_filter)
        return queryset

    def perform_update(self, serializer):
        instance = serializer.instance
        old_data = {
            'medical_urgency': instance.medical_urgency,
            'waitlist_status': instance.waitlist_status,
            'priority_score': instance.priority_score,
        }
        recipient = serializer.save(updated_by=self.request.user.audit_label)
        check_notification_rules(recipient, 'patient_updated', old_data)

    @action(detail=True, methods=['post'], url_path='recompute-priority')
    def recompute_priority(self, request, pk=None):
        """Recalculate this recipient's priority score and return its breakdown"""
        try:
            result = recompute_priority(pk, acting_user=request.user)
        except NotFoundError as exc:
            return engine_error_response(exc)

        return Response({
            'success': True,
            'recipient_id': result.recipient_id,
            'priority_score': result.priority_score,
            'breakdown': result.breakdown,
        })


class DonorOrganViewSet(viewsets.ReadOnlyModelViewSet):
    """API endpoint for donor organs and live matching"""
    queryset = DonorOrgan.objects.all()
    serializer_class = DonorOrganSerializer

    @action(detail=True, methods=['post'], url_path='run-matching')
    def run_matching(self, request, pk=None):
        options = RunMatchingSerializer(data=request.data)
        options.is_valid(raise_exception=True)
        try:
            outcome = run_matching(
                donor_organ_id=pk,
                simulate=options.validated_data['simulate'],
                acting_user=request.user,
            )
        except EngineError as exc:
            return engine_error_response(exc)

        return Response(matching_response(outcome), status=status.HTTP_200_OK)


class MatchViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Match.objects.select_related('donor_organ').all()
    serializer_class = MatchSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        donor_organ = self.request.query_params.get('donor_organ')
        if donor_organ:
            queryset = queryset.filter(donor_organ_id=donor_organ)
        return queryset


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """The signed-in user's own notifications"""
    serializer_class = NotificationSerializer

    def get_queryset(self):
        queryset = Notification.objects.filter(recipient=self.request.user)
        if self.request.query_params.get('unread') in ('1', 'true'):
            queryset = queryset.filter(is_read=False)
        return queryset

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=['is_read', 'read_at'])
        return Response(self.get_serializer(notification).data)


@api_view(['POST'])
def simulate_matching(request):
    """Rank the live waitlist against a hypothetical donor without saving anything"""
    serializer = HypotheticalDonorSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        outcome = run_matching(
            hypothetical_donor=serializer.to_donor(),
            simulate=True,
            acting_user=request.user,
        )
    except EngineError as exc:
        return engine_error_response(exc)
    return Response(matching_response(outcome), status=status.HTTP_200_OK)


@api_view(['GET'])
def export_waitlist(request):
    """Waitlist in priority order as JSON, or CSV with ?export=csv"""
    organ = request.query_params.get('organ') or None
    status_filter = request.query_params.get('status') or 'active'
    rows = waitlist_export(organ_type=organ, status=status_filter)

    logger.info(f"Waitlist exported by {request.user.audit_label}: {len(rows)} recipients")

    if request.query_params.get('export') == 'csv':
        df = pd.DataFrame(rows, columns=[
            'waitlist_rank', 'recipient_id', 'patient_id', 'name', 'blood_type', 'organ_needed',
            'medical_urgency', 'priority_score', 'date_added_to_waitlist', 'waitlist_status',
        ])
        response = HttpResponse(df.to_csv(index=False), content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="waitlist.csv"'
        return response

    return Response({'success': True, 'count': len(rows), 'data': rows})


@api_view(['GET'])
def waitlist_stats(request):
    """Priority score statistics for the active waitlist"""
    recipients = Recipient.objects.filter(waitlist_status='active').only('organ_needed', 'priority_score')
    stats = waitlist_statistics(recipients)
    stats['total_recipients'] = Recipient.objects.count()
    stats['active_recipients'] = stats['overall']['count']
    stats['available_organs'] = DonorOrgan.objects.filter(organ_status='available').count()
    return Response(stats)
