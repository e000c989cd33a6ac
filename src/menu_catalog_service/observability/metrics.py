"""Custom metrics for the menu catalog service."""

from opentelemetry import metrics

meter = metrics.get_meter("menu-catalog-svc")

catalog_mutation_counter = meter.create_counter(
    name="catalog_mutations_total",
    description="Total number of catalog writes by entity and operation",
    unit="1",
)

public_menu_view_counter = meter.create_counter(
    name="public_menu_views_total",
    description="Total number of public menu reads by result",
    unit="1",
)

payment_verification_counter = meter.create_counter(
    name="payment_verifications_total",
    description="Total number of payment verifications by result",
    unit="1",
)

asset_upload_size_histogram = meter.create_histogram(
    name="asset_upload_size_bytes",
    description="Size of uploaded images",
    unit="By",
)


def record_catalog_mutation(entity: str, operation: str) -> None:
    """Record a successful catalog write.

    Args:
        entity: Entity kind ("restaurant", "menu", "category", "item")
        operation: Operation performed ("create", "update", "delete", ...)
    """
    catalog_mutation_counter.add(1, {"entity": entity, "operation": operation})


def record_public_menu_view(result: str) -> None:
    """Record a public menu read ("served" or "not_found")."""
    public_menu_view_counter.add(1, {"result": result})


def record_payment_verification(result: str, plan_type: str | None = None) -> None:
    """Record a payment verification attempt.

    Args:
        result: "verified" or "rejected"
        plan_type: Plan being paid for, if known
    """
    attributes = {"result": result}
    if plan_type:
        attributes["plan_type"] = plan_type
    payment_verification_counter.add(1, attributes)


def record_asset_upload(size_bytes: int, content_type: str) -> None:
    """Record the size of an uploaded asset."""
    asset_upload_size_histogram.record(size_bytes, {"content_type": content_type})
