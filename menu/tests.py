from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import CustomizationGroup, CustomizationOption, MenuItem, Table


class TableResolveTests(TestCase):
    def setUp(self):
        self.table = Table.objects.create(table_number=7)

    def test_resolves_by_uuid(self):
        self.assertEqual(Table.resolve(str(self.table.pk)), self.table)

    def test_resolves_by_table_number(self):
        self.assertEqual(Table.resolve("7"), self.table)

    def test_inactive_and_unknown_tables_are_none(self):
        Table.objects.create(table_number=8, is_active=False)
        self.assertIsNone(Table.resolve("8"))
        self.assertIsNone(Table.resolve("meja-9"))
        self.assertIsNone(Table.resolve(""))


class ResolveUnitPriceTests(TestCase):
    def setUp(self):
        self.item = MenuItem.objects.create(name="Nasi Jamblang", base_price=Decimal("25000"))
        self.level = CustomizationGroup.objects.create(
            menu_item=self.item, group_name="Level pedas", group_type="single", is_required=True,
        )
        self.mild = CustomizationOption.objects.create(group=self.level, option_name="Sedang")
        self.hot = CustomizationOption.objects.create(group=self.level, option_name="Pedas", price_adjustment=Decimal("2000"))
        self.extras = CustomizationGroup.objects.create(menu_item=self.item, group_name="Tambahan", group_type="multiple")
        self.egg = CustomizationOption.objects.create(group=self.extras, option_name="Telur", price_adjustment=Decimal("5000"))
        self.tofu = CustomizationOption.objects.create(group=self.extras, option_name="Tahu", price_adjustment=Decimal("3000"))

    def test_adds_selected_option_adjustments(self):
        price = self.item.resolve_unit_price({
            str(self.level.pk): [str(self.hot.pk)],
            str(self.extras.pk): [str(self.egg.pk), str(self.tofu.pk)],
        })
        self.assertEqual(price, Decimal("35000"))

    def test_required_group_must_be_chosen(self):
        with self.assertRaises(ValidationError):
            self.item.resolve_unit_price({str(self.extras.pk): [str(self.egg.pk)]})

    def test_single_group_rejects_two_options(self):
        with self.assertRaises(ValidationError):
            self.item.resolve_unit_price({str(self.level.pk): [str(self.mild.pk), str(self.hot.pk)]})

    def test_option_from_another_item_is_rejected(self):
        other = MenuItem.objects.create(name="Es Teh", base_price=Decimal("5000"))
        group = CustomizationGroup.objects.create(menu_item=other, group_name="Gula")
        sugar = CustomizationOption.objects.create(group=group, option_name="Manis")
        with self.assertRaises(ValidationError):
            self.item.resolve_unit_price({
                str(self.level.pk): [str(self.mild.pk)],
                str(group.pk): [str(sugar.pk)],
            })

    def test_unavailable_option_is_rejected(self):
        self.hot.is_available = False
        self.hot.save()
        with self.assertRaises(ValidationError):
            self.item.resolve_unit_price({str(self.level.pk): [str(self.hot.pk)]})

    def test_repeated_option_is_charged_once(self):
        price = self.item.resolve_unit_price({
            str(self.level.pk): [str(self.mild.pk)],
            str(self.extras.pk): [str(self.egg.pk), str(self.egg.pk)],
        })
        self.assertEqual(price, Decimal("30000"))
