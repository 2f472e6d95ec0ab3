from django.contrib import admin

from .models import CustomizationGroup, CustomizationOption, MenuItem, Table


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ("table_number", "status", "capacity", "is_active", "occupied_since")
    list_filter = ("status", "is_active")
    readonly_fields = ("current_session_id", "occupied_since", "created_at", "updated_at")


class CustomizationOptionInline(admin.TabularInline):
    model = CustomizationOption
    extra = 0


@admin.register(CustomizationGroup)
class CustomizationGroupAdmin(admin.ModelAdmin):
    list_display = ("group_name", "menu_item", "group_type", "is_required")
    inlines = [CustomizationOptionInline]


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ("name", "base_price", "is_available", "preparation_time")
    search_fields = ("name",)
    list_filter = ("is_available",)
