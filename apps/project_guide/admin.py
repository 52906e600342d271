from django.contrib import admin
from .models import ProjectGuide


@admin.register(ProjectGuide)
class ProjectGuideAdmin(admin.ModelAdmin):
    list_display = ('__str__', 'updated_by', 'updated_at')
    readonly_fields = ('updated_by', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return not ProjectGuide.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
