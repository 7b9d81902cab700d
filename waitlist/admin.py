# waitlist/admin.py
from django.contrib import admin, messages
from django.utils.html import format_html

from waitlist.exceptions import EngineError
from waitlist.models import DonorOrgan, Match, Recipient, WeightConfiguration
from waitlist.services import recompute_priority, run_matching


@admin.register(Recipient)
class RecipientAdmin(admin.ModelAdmin):
    list_display = [
        'patient_id',
        'full_name',
        'organ_needed',
        'blood_type',
        'medical_urgency',
        'waitlist_status',
        'priority_display',
        'priority_calculated_at',
    ]
    list_filter = ['waitlist_status', 'organ_needed', 'blood_type', 'medical_urgency']
    search_fields = ['patient_id', 'first_name', 'last_name']
    readonly_fields = ['priority_score', 'priority_score_breakdown', 'priority_calculated_at',
                       'created_at', 'updated_at', 'updated_by']
    actions = ['recompute_selected']

    fieldsets = (
        ('Patient', {
            'fields': ('patient_id', 'first_name', 'last_name', 'date_of_birth',
                       'blood_type', 'organ_needed', 'hla_typing')
        }),
        ('Waitlist', {
            'fields': ('waitlist_status', 'date_added_to_waitlist', 'last_evaluation_date',
                       'medical_urgency', 'functional_status', 'prognosis_rating')
        }),
        ('Clinical Values', {
            'fields': ('meld_score', 'las_score', 'pra_percentage', 'cpra_percentage',
                       'weight_kg', 'height_cm', 'comorbidity_score', 'previous_transplants',
                       'compliance_score')
        }),
        ('Priority', {
            'fields': ('priority_score', 'priority_score_breakdown', 'priority_calculated_at'),
            'description': 'Written by the priority recompute only'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'updated_by'),
            'classes': ('collapse',)
        }),
    )

    def priority_display(self, obj):
        if obj.priority_score >= 80:
            color = 'red'
        elif obj.priority_score >= 60:
            color = 'orange'
        else:
            color = 'gray'
        return format_html('<strong style="color: {};">{}</strong>', color, f"{obj.priority_score:.1f}")
    priority_display.short_description = 'Priority'
    priority_display.admin_order_field = 'priority_score'

    @admin.action(description='Recompute priority score')
    def recompute_selected(self, request, queryset):
        count = 0
        for recipient in queryset:
            recompute_priority(recipient.pk, acting_user=request.user)
            count += 1
        self.message_user(request, f"Recomputed priority for {count} recipients.", messages.SUCCESS)


@admin.register(DonorOrgan)
class DonorOrganAdmin(admin.ModelAdmin):
    list_display = ['donor_id', 'organ_type', 'blood_type', 'donor_age', 'organ_status', 'match_count', 'created_at']
    list_filter = ['organ_type', 'blood_type', 'organ_status']
    search_fields = ['donor_id', 'recovery_hospital']
    actions = ['run_matching_selected']

    def match_count(self, obj):
        return obj.matches.count()
    match_count.short_description = 'Matches'

    @admin.action(description='Run matching against the live waitlist')
    def run_matching_selected(self, request, queryset):
        for donor_organ in queryset:
            try:
                outcome = run_matching(donor_organ_id=donor_organ.pk, acting_user=request.user)
            except EngineError as exc:
                self.message_user(request, f"{donor_organ.donor_id}: {exc}", messages.ERROR)
                continue
            self.message_user(
                request,
                f"{donor_organ.donor_id}: {outcome.total_matches} compatible recipients, "
                f"{outcome.matches_created} matches recorded.",
                messages.SUCCESS
            )


@admin.register(WeightConfiguration)
class WeightConfigurationAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'medical_urgency_weight', 'time_on_waitlist_weight',
                    'organ_specific_score_weight', 'evaluation_recency_weight',
                    'blood_type_rarity_weight', 'evaluation_decay_rate', 'updated_at']
    list_filter = ['is_active']


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display = ['donor_organ', 'priority_rank', 'recipient_name', 'compatibility_score',
                    'hla_match_score', 'virtual_crossmatch_result', 'predicted_graft_survival',
                    'match_status', 'created_at']
    list_filter = ['match_status', 'virtual_crossmatch_result']
    search_fields = ['recipient_name', 'donor_organ__donor_id']
    readonly_fields = [f.name for f in Match._meta.fields if f.name != 'match_status']
