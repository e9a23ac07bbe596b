from django.contrib import admin

from ledger.models import (
    CommissionConfig,
    CommissionRule,
    Order,
    Settlement,
    SettlementAdjustment,
    Transaction,
    WalletAccount,
)


class ReadOnlyAdminMixin:
    """
    Mixin that makes an admin model completely read-only.
    Orders arrive from the order service and settlements and wallet entries
    are written by the engine only, so the admin can browse but not edit them.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class CommissionRuleInline(admin.TabularInline):
    model = CommissionRule
    extra = 0
    fields = (
        "kind",
        "value",
        "min_order_amount",
        "max_order_amount",
        "priority",
        "active",
    )


@admin.register(CommissionConfig)
class CommissionConfigAdmin(admin.ModelAdmin):
    list_display = ("id", "restaurant_id", "kind", "value", "active", "updated_at")
    list_filter = ("kind", "active")
    search_fields = ("restaurant_id",)
    inlines = (CommissionRuleInline,)


@admin.register(Order)
class OrderAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "order_id",
        "restaurant_id",
        "status",
        "total",
        "delivered_at",
        "created_at",
    )
    list_filter = ("status",)
    search_fields = ("order_id", "restaurant_id", "customer_id")


class SettlementAdjustmentInline(admin.TabularInline):
    model = SettlementAdjustment
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Settlement)
class SettlementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "order",
        "restaurant_id",
        "order_amount",
        "admin_commission",
        "restaurant_net_earning",
        "commission_source",
        "created_at",
    )
    list_filter = ("commission_source", "commission_kind")
    search_fields = ("order__order_id", "restaurant_id")
    inlines = (SettlementAdjustmentInline,)


@admin.register(SettlementAdjustment)
class SettlementAdjustmentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "settlement",
        "admin_commission",
        "restaurant_net_earning",
        "reason",
        "created_at",
    )
    search_fields = ("settlement__order__order_id",)


@admin.register(WalletAccount)
class WalletAccountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "uuid", "user_id", "currency", "created_at")
    search_fields = ("uuid", "user_id")


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "account",
        "transaction_type",
        "amount",
        "status",
        "order_id",
        "created_at",
    )
    list_filter = ("transaction_type", "status")
    search_fields = ("account__uuid", "account__user_id", "order_id")
