from django.contrib import admin
from .models import DeleteRequest


@admin.register(DeleteRequest)
class DeleteRequestAdmin(admin.ModelAdmin):
    list_display = ('medical_record_number', 'admission_date', 'requester', 'status',
                    'resolved_by', 'resolved_at', 'created_at')
    list_filter = ('status',)
    search_fields = ('medical_record_number', 'requester__username')
    readonly_fields = ('id', 'created_at', 'updated_at', 'resolved_at')
