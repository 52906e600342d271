from django.contrib import admin
from .models import Submission, SubmissionComment


class SubmissionCommentInline(admin.TabularInline):
    model = SubmissionComment
    extra = 0
    readonly_fields = ('author', 'body', 'created_at')


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    list_display = ('medical_record_number', 'admission_date', 'user', 'data_status',
                    'update_count', 'updated_at')
    list_filter = ('data_status',)
    search_fields = ('medical_record_number', 'user__username')
    readonly_fields = ('id', 'update_count', 'created_at', 'updated_at')
    inlines = [SubmissionCommentInline]


@admin.register(SubmissionComment)
class SubmissionCommentAdmin(admin.ModelAdmin):
    list_display = ('submission', 'author', 'created_at')
    search_fields = ('body', 'author__username')
    readonly_fields = ('created_at', 'updated_at')
