import apps.verification.models
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='VerificationSubject',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('not_started', 'Not started'), ('in_progress', 'In progress'), ('under_review', 'Under review'), ('verified', 'Verified'), ('rejected', 'Rejected')], db_index=True, default='not_started', max_length=20)),
                ('version', models.PositiveIntegerField(default=0)),
                ('phone_confirmed', models.BooleanField(default=False)),
                ('phone_number', models.CharField(blank=True, max_length=20)),
                ('phone_number_hash', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('phone_confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('business_name', models.CharField(blank=True, max_length=200)),
                ('business_description', models.TextField(blank=True)),
                ('business_license_number_encrypted', models.TextField(blank=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('decided_at', models.DateTimeField(blank=True, null=True)),
                ('decision_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('decided_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verification_decisions', to=settings.AUTH_USER_MODEL)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='verification_subject', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'verification_subjects',
            },
        ),
        migrations.CreateModel(
            name='VerificationRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_type', models.CharField(max_length=20)),
                ('account_type', models.CharField(max_length=20)),
                ('business_info', models.JSONField(blank=True, null=True)),
                ('phone_confirmed', models.BooleanField()),
                ('documents', models.JSONField(default=list)),
                ('outcome', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=20)),
                ('submitted_at', models.DateTimeField(db_index=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('review_notes', models.TextField(blank=True)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_verification_requests', to=settings.AUTH_USER_MODEL)),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='requests', to='verification.verificationsubject')),
            ],
            options={
                'db_table': 'verification_requests',
                'ordering': ['submitted_at', 'id'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('outcome', 'pending')), fields=('subject',), name='one_pending_request_per_subject')],
            },
        ),
        migrations.CreateModel(
            name='VerificationDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('identity_proof', 'Identity proof'), ('business_license', 'Business license'), ('farm_certification', 'Farm certification')], max_length=30)),
                ('status', models.CharField(choices=[('uploaded', 'Uploaded'), ('under_review', 'Under review'), ('verified', 'Verified'), ('rejected', 'Rejected')], default='uploaded', max_length=20)),
                ('original_filename', models.CharField(max_length=255)),
                ('size', models.PositiveIntegerField()),
                ('content_type', models.CharField(max_length=100)),
                ('content', models.FileField(max_length=500, upload_to=apps.verification.models.document_upload_path)),
                ('uploaded_at', models.DateTimeField()),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='verification.verificationsubject')),
            ],
            options={
                'db_table': 'verification_documents',
                'ordering': ['kind'],
                'constraints': [models.UniqueConstraint(fields=('subject', 'kind'), name='unique_document_per_kind')],
            },
        ),
        migrations.CreateModel(
            name='VerificationAuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('PHONE_CODE_SENT', 'Phone code sent'), ('PHONE_CONFIRMED', 'Phone confirmed'), ('BUSINESS_INFO_UPDATED', 'Business info updated'), ('DOCUMENT_UPLOADED', 'Document uploaded'), ('DOCUMENT_REMOVED', 'Document removed'), ('SUBMITTED', 'Submitted'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected'), ('RESUBMIT_RESET', 'Resubmission reset')], max_length=30)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='performed_verification_actions', to=settings.AUTH_USER_MODEL)),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='verification.verificationsubject')),
            ],
            options={
                'db_table': 'verification_audit_logs',
                'ordering': ['-timestamp', '-id'],
            },
        ),
    ]
