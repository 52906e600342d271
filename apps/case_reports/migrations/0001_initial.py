import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('medical_record_number', models.CharField(db_index=True, help_text='Hospital medical record number (病歷號)', max_length=50)),
                ('admission_date', models.CharField(help_text='Admission date as YYYY-MM-DD', max_length=10)),
                ('form_data', models.JSONField(default=dict)),
                ('data_status', models.CharField(choices=[('complete', '已完成'), ('incomplete', '未完成')], db_index=True, default='incomplete', max_length=20)),
                ('update_count', models.PositiveIntegerField(default=1, help_text='Number of times the form has been saved')),
                ('user', models.ForeignKey(blank=True, help_text='Account that entered the form; kept as NULL if the account is removed', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='submissions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Submission',
                'verbose_name_plural': 'Submissions',
                'db_table': 'submissions',
                'ordering': ['-updated_at'],
                'indexes': [models.Index(fields=['user', '-updated_at'], name='submissions_user_upd_idx')],
                'constraints': [models.UniqueConstraint(fields=('medical_record_number', 'admission_date'), name='unique_mrn_admission_date')],
            },
        ),
        migrations.CreateModel(
            name='SubmissionComment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('body', models.TextField()),
                ('author', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='submission_comments', to=settings.AUTH_USER_MODEL)),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='case_reports.submission')),
            ],
            options={
                'db_table': 'submission_comments',
                'ordering': ['created_at'],
            },
        ),
    ]
