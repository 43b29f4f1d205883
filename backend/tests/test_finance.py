from datetime import date, datetime

from autoentrepreneur.finance import (
    compute_line_totals, compute_dashboard_metrics, line_amount_cents, paid_revenue, is_overdue,
)

NOW = datetime(2024, 3, 15, 12, 0)


def _inv(status, total, issue=None, created=None, due=None):
    return {"status": status, "total_cents": total, "issue_date": issue, "created_at": created, "due_date": due}


def test_line_totals_sum_quantity_times_price():
    totals = compute_line_totals([
        {"quantity": 2, "unit_price_cents": 5000},
        {"quantity": 1, "unit_price_cents": 3000},
    ])
    assert totals.subtotal_cents == 13000
    assert totals.vat_amount_cents == 0
    assert totals.total_cents == 13000


def test_line_totals_empty():
    totals = compute_line_totals([])
    assert (totals.subtotal_cents, totals.vat_amount_cents, totals.total_cents) == (0, 0, 0)


def test_line_amount_rounds_half_up():
    # 1.5 h à 33,33 € = 49,995 € -> 50,00 €
    assert line_amount_cents(1.5, 3333) == 5000
    assert line_amount_cents(0.25, 10) == 3


def test_line_totals_ignore_vat_rate():
    totals = compute_line_totals([{"quantity": 1, "unit_price_cents": 1000, "vat_rate": 20}])
    assert totals.total_cents == totals.subtotal_cents == 1000


def test_metrics_empty_inputs_are_zero():
    m = compute_dashboard_metrics(now=NOW)
    assert m.current_revenue_cents == 0
    assert m.previous_revenue_cents == 0
    assert m.revenue_change_percent is None
    assert m.pending_quotes_amount_cents == 0
    assert m.pending_quotes_count == 0
    assert m.unpaid_invoices_amount_cents == 0
    assert m.unpaid_invoices_count == 0
    assert m.overdue_count == 0
    assert m.urssaf_estimate_cents == 0


def test_metrics_revenue_current_and_previous_month():
    invoices = [
        _inv("paid", 10000, issue=date(2024, 3, 2)),
        _inv("paid", 5000, issue=date(2024, 2, 10)),
        _inv("paid", 7000, issue=date(2024, 1, 31)),     # hors fenêtre
        _inv("sent", 99900, issue=date(2024, 3, 3)),     # pas encore payée
    ]
    m = compute_dashboard_metrics(invoices=invoices, now=NOW)
    assert m.current_revenue_cents == 10000
    assert m.previous_revenue_cents == 5000
    assert m.revenue_change_percent == 100.0


def test_metrics_revenue_falls_back_to_created_at():
    invoices = [_inv("paid", 2500, created="2024-03-01T09:00:00")]
    m = compute_dashboard_metrics(invoices=invoices, now=NOW)
    assert m.current_revenue_cents == 2500


def test_metrics_missing_or_unreadable_dates_are_excluded():
    invoices = [
        _inv("paid", 1000),
        _inv("paid", 2000, issue="pas une date"),
        _inv("paid", 3000, issue=date(2024, 3, 16)),     # après "maintenant"
    ]
    m = compute_dashboard_metrics(invoices=invoices, now=NOW)
    assert m.current_revenue_cents == 0


def test_metrics_pending_quotes_only_sent():
    quotes = [
        {"status": "sent", "total_cents": 1000},
        {"status": "sent", "total_cents": 2000},
        {"status": "draft", "total_cents": 4000},
        {"status": "accepted", "total_cents": 8000},
    ]
    m = compute_dashboard_metrics(quotes=quotes, now=NOW)
    assert m.pending_quotes_count == 2
    assert m.pending_quotes_amount_cents == 3000


def test_metrics_unpaid_and_overdue():
    invoices = [
        _inv("sent", 1000, due=date(2024, 4, 1)),
        _inv("sent", 2000, due=date(2024, 3, 1)),        # échéance dépassée
        _inv("overdue", 4000, due=date(2024, 5, 1)),
        _inv("draft", 8000, due=date(2024, 1, 1)),
        _inv("cancelled", 16000),
    ]
    m = compute_dashboard_metrics(invoices=invoices, now=NOW)
    assert m.unpaid_invoices_count == 3
    assert m.unpaid_invoices_amount_cents == 7000
    assert m.overdue_count == 2


def test_metrics_urssaf_estimate_uses_rate():
    invoices = [_inv("paid", 100000, issue=date(2024, 3, 1))]
    assert compute_dashboard_metrics(invoices=invoices, now=NOW, urssaf_rate="0.22").urssaf_estimate_cents == 22000
    assert compute_dashboard_metrics(invoices=invoices, now=NOW, urssaf_rate=0.124).urssaf_estimate_cents == 12400


def test_metrics_expenses():
    expenses = [
        {"amount_cents": 1200, "expense_date": date(2024, 3, 5)},
        {"amount_cents": 800, "expense_date": date(2024, 2, 5)},
        {"amount_cents": 500, "expense_date": None},
    ]
    m = compute_dashboard_metrics(expenses=expenses, now=NOW)
    assert m.expenses_month_cents == 1200
    assert m.expenses_total_cents == 2500


def test_paid_revenue_window_is_half_open():
    invoices = [_inv("paid", 100, issue=date(2024, 3, 1)), _inv("paid", 200, issue=date(2024, 4, 1))]
    assert paid_revenue(invoices, datetime(2024, 3, 1), datetime(2024, 4, 1)) == 100


def test_is_overdue():
    assert is_overdue(_inv("overdue", 0), NOW)
    assert is_overdue(_inv("sent", 0, due=date(2024, 3, 14)), NOW)
    assert not is_overdue(_inv("sent", 0, due=date(2024, 3, 16)), NOW)
    assert not is_overdue(_inv("sent", 0), NOW)
