# waitlist/management/commands/import_recipients.py
"""
Django Management Command to import waitlisted recipients from Excel or CSV.
Rows are matched on patient_id: existing recipients are updated, new ones created.

USAGE:
    python manage.py import_recipients path/to/waitlist.xlsx
    python manage.py import_recipients waitlist.csv --recompute
"""
import os

import pandas as pd
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from waitlist.models import Recipient
from waitlist.services import recompute_priority

REQUIRED_COLUMNS = ['patient_id', 'first_name', 'last_name', 'blood_type', 'organ_needed']

OPTIONAL_TEXT = ['hla_typing', 'medical_urgency', 'functional_status', 'prognosis_rating', 'waitlist_status']
OPTIONAL_NUMBERS = ['meld_score', 'las_score', 'pra_percentage', 'cpra_percentage', 'weight_kg',
                    'height_cm', 'comorbidity_score', 'compliance_score']
OPTIONAL_DATES = ['date_of_birth', 'date_added_to_waitlist', 'last_evaluation_date']


def read_table(path):
    if path.lower().endswith('.csv'):
        return pd.read_csv(path)
    return pd.read_excel(path)


def row_to_fields(row):
    fields = {}
    for column in REQUIRED_COLUMNS:
        if pd.isna(row[column]) or not str(row[column]).strip():
            raise ValueError(f"{column} is empty")
        fields[column] = str(row[column]).strip()

    for column in OPTIONAL_TEXT:
        if column in row and pd.notna(row[column]):
            fields[column] = str(row[column]).strip()
    for column in OPTIONAL_NUMBERS:
        if column in row and pd.notna(row[column]):
            fields[column] = float(row[column])
    for column in OPTIONAL_DATES:
        if column in row and pd.notna(row[column]):
            fields[column] = pd.to_datetime(row[column]).date()
    if 'previous_transplants' in row and pd.notna(row['previous_transplants']):
        fields['previous_transplants'] = int(row['previous_transplants'])

    return fields


class Command(BaseCommand):
    help = 'Import waitlisted recipients from an Excel or CSV file'

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Excel (.xlsx) or CSV file with one recipient per row')
        parser.add_argument('--recompute', action='store_true', help='Recompute priority for every imported row')

    def handle(self, *args, **options):
        path = options['path']
        if not os.path.exists(path):
            raise CommandError(f"File not found: {path}")

        df = read_table(path)
        missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
        if missing:
            raise CommandError(f"Missing columns: {', '.join(missing)}")

        total = len(df)
        created_count = 0
        updated_count = 0
        errors = []
        imported_ids = []

        for index, row in df.iterrows():
            try:
                fields = row_to_fields(row)
                patient_id = fields.pop('patient_id')
                with transaction.atomic():
                    recipient, created = Recipient.objects.update_or_create(
                        patient_id=patient_id, defaults=fields
                    )
            except Exception as e:
                errors.append(f"row {index + 1}: {e}")
                self.stdout.write(self.style.ERROR(f"[{index + 1}/{total}] Error: {e}"))
                continue

            imported_ids.append(recipient.pk)
            if created:
                created_count += 1
            else:
                updated_count += 1

        if options['recompute']:
            for recipient_id in imported_ids:
                recompute_priority(recipient_id)

        self.stdout.write(self.style.SUCCESS(
            f"Imported {total} rows: {created_count} created, {updated_count} updated, {len(errors)} errors"
        ))
        if options['recompute']:
            self.stdout.write(f"Priority recomputed for {len(imported_ids)} recipients")
