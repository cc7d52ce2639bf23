"""Duplicate check before creating a customer from a report name."""

from typing import Iterable, Optional

from customer_resolver.models import DuplicateCheckResult, KnownCustomer
from customer_resolver.normalize import normalize_customer_name


def check_for_duplicates(
    report_customer: str,
    known_customers: Iterable[KnownCustomer],
    gst_no: Optional[str] = None,
    state_code: Optional[str] = None,
) -> DuplicateCheckResult:
    """Find existing customers a new customer would duplicate.

    Only customers with the same normalized report name are considered.
    The warning says how strong the overlap is: same GST number, same
    state code (when neither side has a GST number), or name only.

    Args:
        report_customer: Report name of the customer about to be created
        known_customers: Customer master for the company
        gst_no: GST number of the new customer, if entered
        state_code: State code of the new customer, if entered

    Returns:
        DuplicateCheckResult listing the clashing customers
    """
    normalized = normalize_customer_name(report_customer)
    result = DuplicateCheckResult()
    if not normalized:
        return result

    for customer in known_customers:
        if normalize_customer_name(customer.report_customer) != normalized:
            continue

        if gst_no and customer.gst_no and gst_no == customer.gst_no:
            warning = f'Exact match found: "{customer.report_customer}" with same GST number'
        elif not gst_no and not customer.gst_no and (state_code or None) == (customer.state_code or None):
            warning = f'Exact match found: "{customer.report_customer}" with same state code'
        else:
            warning = f'Name match found: "{customer.report_customer}"'

        result.duplicates.append(customer)
        result.warnings.append(warning)

    result.has_duplicates = bool(result.duplicates)
    return result
