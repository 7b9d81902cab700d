# api/serializers.py
from rest_framework import serializers

from algorithms.blood_compatibility import BLOOD_TYPES, get_compatible_donors
from algorithms.organs import OrganType
from algorithms.records import hypothetical_donor
from notifications.models import Notification
from waitlist.models import DonorOrgan, Match, Recipient


class RecipientSerializer(serializers.ModelSerializer):
    """
    Recipient with the engine-owned priority fields read-only
    """
    full_name = serializers.CharField(read_only=True)
    compatible_donor_blood_types = serializers.SerializerMethodField()

    class Meta:
        model = Recipient
        fields = [
            'id',
            'patient_id',
            'first_name',
            'last_name',
            'full_name',
            'date_of_birth',
            'blood_type',
            'compatible_donor_blood_types',
            'organ_needed',
            'hla_typing',
            'medical_urgency',
            'functional_status',
            'prognosis_rating',
            'waitlist_status',
            'date_added_to_waitlist',
            'last_evaluation_date',
            'meld_score',
            'las_score',
            'pra_percentage',
            'cpra_percentage',
            'weight_kg',
            'height_cm',
            'comorbidity_score',
            'previous_transplants',
            'compliance_score',
            'priority_score',
            'priority_score_breakdown',
            'priority_calculated_at',
            'updated_at',
            'updated_by',
        ]
        read_only_fields = [
            'priority_score',
            'priority_score_breakdown',
            'priority_calculated_at',
            'updated_at',
            'updated_by',
        ]

    def get_compatible_donor_blood_types(self, obj):
        return get_compatible_donors(obj.blood_type)


class DonorOrganSerializer(serializers.ModelSerializer):
    class Meta:
        model = DonorOrgan
        fields = [
            'id',
            'donor_id',
            'organ_type',
            'blood_type',
            'hla_typing',
            'donor_age',
            'donor_weight_kg',
            'donor_height_cm',
            'cause_of_death',
            'cold_ischemia_time_hours',
            'recovery_hospital',
            'organ_status',
            'created_at',
        ]


class MatchSerializer(serializers.ModelSerializer):
    donor_id = serializers.CharField(source='donor_organ.donor_id', read_only=True)
    total_hla_matches = serializers.IntegerField(read_only=True)

    class Meta:
        model = Match
        fields = [
            'id',
            'donor_organ',
            'donor_id',
            'recipient',
            'recipient_name',
            'priority_rank',
            'compatibility_score',
            'blood_type_compatible',
            'abo_compatible',
            'hla_match_score',
            'hla_a_match',
            'hla_b_match',
            'hla_dr_match',
            'hla_dq_match',
            'total_hla_matches',
            'size_compatible',
            'virtual_crossmatch_result',
            'physical_crossmatch_result',
            'predicted_graft_survival',
            'match_status',
            'created_at',
            'created_by',
        ]


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id',
            'title',
            'message',
            'notification_type',
            'priority_level',
            'related_recipient',
            'related_recipient_name',
            'action_url',
            'metadata',
            'is_read',
            'read_at',
            'created_at',
        ]


class HypotheticalDonorSerializer(serializers.Serializer):
    """Donor organ described in a simulation request; never saved"""
    organ_type = serializers.ChoiceField(choices=OrganType.choices)
    blood_type = serializers.ChoiceField(choices=BLOOD_TYPES)
    hla_typing = serializers.CharField(required=False, allow_blank=True, default='')
    donor_age = serializers.IntegerField(required=False, allow_null=True, min_value=0, default=None)
    donor_weight_kg = serializers.FloatField(required=False, allow_null=True, min_value=0.1, default=None)
    donor_height_cm = serializers.FloatField(required=False, allow_null=True, min_value=1, default=None)

    def to_donor(self):
        data = dict(self.validated_data)
        data['hla_typing'] = data.get('hla_typing') or None
        return hypothetical_donor(**data)


class RunMatchingSerializer(serializers.Serializer):
    """Options for a matching pass on a stored donor organ"""
    simulate = serializers.BooleanField(default=False)


class RankedCandidateSerializer(serializers.Serializer):
    """One row of a matching pass result"""

    def to_representation(self, candidate):
        recipient = candidate.recipient
        bundle = candidate.bundle
        return {
            'priority_rank': candidate.rank,
            'patient_id': recipient.id,
            'patient_name': recipient.full_name,
            'patient_id_mrn': recipient.patient_id,
            'blood_type': recipient.blood_type,
            'organ_needed': recipient.organ_needed,
            'medical_urgency': recipient.medical_urgency,
            'priority_score': recipient.priority_score,
            'compatibility_score': round(bundle.compatibility_score, 2),
            'blood_type_compatible': bundle.blood_type_compatible,
            'abo_compatible': bundle.abo_compatible,
            'hla_match_score': round(bundle.hla_match_score, 2),
            'hla_matches': bundle.hla_matches,
            'total_hla_matches': bundle.total_hla_matches,
            'size_compatible': bundle.size_compatible,
            'virtual_crossmatch': bundle.virtual_crossmatch,
            'predicted_graft_survival': round(bundle.predicted_graft_survival, 2),
            'days_on_waitlist': bundle.days_on_waitlist,
        }
