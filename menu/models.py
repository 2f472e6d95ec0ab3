import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Table(models.Model):
    STATUS_CHOICES = [
        ("available", "Available"),
        ("occupied", "Occupied"),
        ("reserved", "Reserved"),
        ("cleaning", "Cleaning"),
        ("maintenance", "Maintenance"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    table_number = models.PositiveIntegerField(unique=True)
    capacity = models.PositiveIntegerField(default=4)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="available", db_index=True)
    current_session_id = models.CharField(max_length=100, blank=True, default="")
    occupied_since = models.DateTimeField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("table_number",)

    def __str__(self):
        return f"Meja {self.table_number}"

    @classmethod
    def resolve(cls, identifier):
        """Find an active table by uuid, falling back to its table number."""
        raw = str(identifier or "").strip()
        if not raw:
            return None
        try:
            return cls.objects.get(pk=uuid.UUID(raw), is_active=True)
        except (ValueError, cls.DoesNotExist):
            pass
        if raw.isdigit():
            return cls.objects.filter(table_number=int(raw), is_active=True).first()
        return None


class MenuItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    base_price = models.DecimalField(max_digits=12, decimal_places=2)
    is_available = models.BooleanField(default=True)
    preparation_time = models.PositiveIntegerField(default=15, help_text="Minutes")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def resolve_unit_price(self, selection: dict | None) -> Decimal:
        """Base price plus the price adjustment of every selected option.

        ``selection`` maps customization group id -> list of option ids.
        Raises ``ValidationError`` for unknown options, options of another
        item, more than one option in a single-choice group, or a required
        group left empty.
        """
        selection = selection or {}
        groups = {str(g.pk): g for g in self.customization_groups.prefetch_related("options")}
        price = Decimal(self.base_price)

        for group_id, option_ids in selection.items():
            group = groups.get(str(group_id))
            if group is None:
                raise ValidationError(f"Unknown customization group {group_id} for {self.name}")
            option_ids = list(dict.fromkeys(str(o) for o in option_ids or []))
            if group.group_type == "single" and len(option_ids) > 1:
                raise ValidationError(f"{group.group_name}: choose only one option")
            options = {str(o.pk): o for o in group.options.all() if o.is_available}
            for option_id in option_ids:
                option = options.get(str(option_id))
                if option is None:
                    raise ValidationError(f"{group.group_name}: option {option_id} is not available")
                price += option.price_adjustment

        for group_id, group in groups.items():
            if group.is_required and not (selection.get(group_id) or []):
                raise ValidationError(f"{group.group_name} is required for {self.name}")
        return price


class CustomizationGroup(models.Model):
    GROUP_TYPES = [("single", "Single choice"), ("multiple", "Multiple choice")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    menu_item = models.ForeignKey(MenuItem, on_delete=models.CASCADE, related_name="customization_groups")
    group_name = models.CharField(max_length=255)
    group_type = models.CharField(max_length=16, choices=GROUP_TYPES, default="single")
    is_required = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("display_order",)

    def __str__(self):
        return f"{self.menu_item.name} / {self.group_name}"


class CustomizationOption(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(CustomizationGroup, on_delete=models.CASCADE, related_name="options")
    option_name = models.CharField(max_length=255)
    price_adjustment = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_available = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("display_order",)

    def __str__(self):
        return self.option_name
