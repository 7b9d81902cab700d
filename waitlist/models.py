# waitlist/models.py
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.db.models import Q

from algorithms.organs import OrganType
from algorithms.records import RecipientRecord, DonorRecord, WeightConfig

BLOOD_TYPE_CHOICES = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]


# ---------------------------
# Recipient (waitlisted patient)
# ---------------------------
class Recipient(models.Model):
    URGENCY_CHOICES = [
        ('critical', 'Critical'),
        ('high', 'High'),
        ('medium', 'Medium'),
        ('low', 'Low'),
    ]

    FUNCTIONAL_STATUS_CHOICES = [
        ('critical', 'Critical'),
        ('fully_dependent', 'Fully Dependent'),
        ('partially_dependent', 'Partially Dependent'),
        ('independent', 'Independent'),
    ]

    PROGNOSIS_CHOICES = [
        ('critical', 'Critical'),
        ('poor', 'Poor'),
        ('fair', 'Fair'),
        ('good', 'Good'),
        ('excellent', 'Excellent'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('temporarily_unavailable', 'Temporarily Unavailable'),
        ('transplanted', 'Transplanted'),
        ('removed', 'Removed'),
    ]

    patient_id = models.CharField(max_length=50, unique=True, help_text="Medical record number")
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField(null=True, blank=True)

    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    organ_needed = models.CharField(max_length=20, choices=OrganType.choices)
    hla_typing = models.CharField(max_length=255, blank=True, help_text="e.g. A2 A24 B7 B44 DR4 DR15 DQ6")

    medical_urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='medium')
    functional_status = models.CharField(max_length=25, choices=FUNCTIONAL_STATUS_CHOICES, blank=True)
    prognosis_rating = models.CharField(max_length=10, choices=PROGNOSIS_CHOICES, blank=True)
    waitlist_status = models.CharField(max_length=25, choices=STATUS_CHOICES, default='active')
    date_added_to_waitlist = models.DateField(null=True, blank=True)
    last_evaluation_date = models.DateField(null=True, blank=True)

    # Organ-specific severity
    meld_score = models.FloatField(null=True, blank=True)
    las_score = models.FloatField(null=True, blank=True)
    pra_percentage = models.FloatField(null=True, blank=True)
    cpra_percentage = models.FloatField(null=True, blank=True)

    weight_kg = models.FloatField(null=True, blank=True)
    height_cm = models.FloatField(null=True, blank=True)
    comorbidity_score = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(10)]
    )
    previous_transplants = models.PositiveIntegerField(default=0)
    compliance_score = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(10)]
    )

    # Written only by the priority recompute path
    priority_score = models.FloatField(default=0)
    priority_score_breakdown = models.JSONField(null=True, blank=True)
    priority_calculated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.CharField(max_length=254, blank=True)

    def __str__(self):
        return f"{self.full_name} ({self.organ_needed}, {self.blood_type})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def snapshot(self):
        """Copy of the fields the scoring engine reads"""
        return RecipientRecord(
            id=self.pk,
            blood_type=self.blood_type,
            organ_needed=self.organ_needed,
            hla_typing=self.hla_typing or None,
            first_name=self.first_name,
            last_name=self.last_name,
            patient_id=self.patient_id,
            date_of_birth=self.date_of_birth,
            medical_urgency=self.medical_urgency,
            functional_status=self.functional_status or None,
            prognosis_rating=self.prognosis_rating or None,
            date_added_to_waitlist=self.date_added_to_waitlist,
            last_evaluation_date=self.last_evaluation_date,
            meld_score=self.meld_score,
            las_score=self.las_score,
            pra_percentage=self.pra_percentage,
            cpra_percentage=self.cpra_percentage,
            weight_kg=self.weight_kg,
            height_cm=self.height_cm,
            comorbidity_score=self.comorbidity_score,
            previous_transplants=self.previous_transplants,
            compliance_score=self.compliance_score,
            priority_score=self.priority_score,
            waitlist_status=self.waitlist_status,
        )

    class Meta:
        ordering = ['-priority_score', 'date_added_to_waitlist', 'id']
        indexes = [
            models.Index(fields=['organ_needed', 'waitlist_status']),
            models.Index(fields=['-priority_score']),
        ]


# ---------------------------
# Donor Organ
# ---------------------------
class DonorOrgan(models.Model):
    STATUS_CHOICES = [
        ('available', 'Available'),
        ('allocated', 'Allocated'),
        ('transplanted', 'Transplanted'),
        ('discarded', 'Discarded'),
    ]

    donor_id = models.CharField(max_length=50, unique=True, help_text="External donor identifier")
    organ_type = models.CharField(max_length=20, choices=OrganType.choices)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    hla_typing = models.CharField(max_length=255, blank=True)

    donor_age = models.PositiveIntegerField(null=True, blank=True)
    donor_weight_kg = models.FloatField(null=True, blank=True)
    donor_height_cm = models.FloatField(null=True, blank=True)
    cause_of_death = models.CharField(max_length=200, blank=True)
    cold_ischemia_time_hours = models.FloatField(null=True, blank=True)
    recovery_hospital = models.CharField(max_length=200, blank=True)

    organ_status = models.CharField(max_length=15, choices=STATUS_CHOICES, default='available')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.donor_id} - {self.organ_type} ({self.blood_type})"

    def snapshot(self):
        return DonorRecord(
            id=self.pk,
            organ_type=self.organ_type,
            blood_type=self.blood_type,
            hla_typing=self.hla_typing or None,
            donor_age=self.donor_age,
            donor_weight_kg=self.donor_weight_kg,
            donor_height_cm=self.donor_height_cm,
        )

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Donor Organ'
        verbose_name_plural = 'Donor Organs'


# ---------------------------
# Priority weights
# ---------------------------
class WeightConfiguration(models.Model):
    """
    Weight fractions for the priority score. At most one row is active; with
    none active the built-in defaults apply.
    """
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)

    medical_urgency_weight = models.FloatField(default=0.30)
    time_on_waitlist_weight = models.FloatField(default=0.25)
    organ_specific_score_weight = models.FloatField(default=0.25)
    evaluation_recency_weight = models.FloatField(default=0.10)
    blood_type_rarity_weight = models.FloatField(default=0.10)
    evaluation_decay_rate = models.FloatField(
        default=0.5,
        validators=[MinValueValidator(0), MaxValueValidator(1)]
    )

    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name}{' (active)' if self.is_active else ''}"

    def save(self, *args, **kwargs):
        # Activating one configuration deactivates the rest
        with transaction.atomic():
            if self.is_active:
                WeightConfiguration.objects.filter(is_active=True).exclude(pk=self.pk).update(is_active=False)
            super().save(*args, **kwargs)

    def snapshot(self):
        return WeightConfig(
            medical_urgency=self.medical_urgency_weight,
            time_on_waitlist=self.time_on_waitlist_weight,
            organ_specific=self.organ_specific_score_weight,
            evaluation_recency=self.evaluation_recency_weight,
            blood_type_rarity=self.blood_type_rarity_weight,
            evaluation_decay_rate=self.evaluation_decay_rate,
            name=self.name,
        )

    class Meta:
        ordering = ['-is_active', '-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['is_active'],
                condition=Q(is_active=True),
                name='single_active_weight_configuration',
            ),
        ]


# ---------------------------
# Match (one ranked candidate of a live matching pass)
# ---------------------------
class Match(models.Model):
    STATUS_CHOICES = [
        ('potential', 'Potential'),
        ('offered', 'Offered'),
        ('accepted', 'Accepted'),
        ('declined', 'Declined'),
    ]

    CROSSMATCH_CHOICES = [
        ('negative', 'Negative'),
        ('pending', 'Pending'),
    ]

    donor_organ = models.ForeignKey(DonorOrgan, on_delete=models.CASCADE, related_name='matches')
    recipient = models.ForeignKey(Recipient, on_delete=models.CASCADE, related_name='matches')
    recipient_name = models.CharField(max_length=200)

    compatibility_score = models.FloatField()
    blood_type_compatible = models.BooleanField(default=True)
    abo_compatible = models.BooleanField(default=True)
    hla_match_score = models.FloatField()
    hla_a_match = models.PositiveSmallIntegerField(default=0)
    hla_b_match = models.PositiveSmallIntegerField(default=0)
    hla_dr_match = models.PositiveSmallIntegerField(default=0)
    hla_dq_match = models.PositiveSmallIntegerField(default=0)
    size_compatible = models.BooleanField(default=True)

    match_status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='potential')
    priority_rank = models.PositiveIntegerField()
    virtual_crossmatch_result = models.CharField(max_length=10, choices=CROSSMATCH_CHOICES)
    physical_crossmatch_result = models.CharField(max_length=20, default='not_performed')
    predicted_graft_survival = models.FloatField()

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.CharField(max_length=254, blank=True)

    def __str__(self):
        return f"#{self.priority_rank} {self.recipient_name} ← {self.donor_organ.donor_id}"

    @property
    def total_hla_matches(self):
        return self.hla_a_match + self.hla_b_match + self.hla_dr_match

    class Meta:
        ordering = ['donor_organ', 'priority_rank']
        verbose_name_plural = 'Matches'
        indexes = [
            models.Index(fields=['donor_organ', 'priority_rank']),
        ]
