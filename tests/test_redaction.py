"""
Tests for the redaction post-filter.

Every model reply passes through redact_pii before it is shown or stored,
so these cover each placeholder, the keep-list (metrics, percentages,
safe URLs) and idempotency.
"""

from sharplog.core.redaction import redact_pii, redact_json, detect_unredacted_pii


def test_email_replaced():
    assert redact_pii("Send it to jane.doe@acme.io please") == "Send it to [EMAIL] please"


def test_phone_formats_replaced():
    assert redact_pii("Call 555-123-4567 tomorrow") == "Call [PHONE] tomorrow"
    assert redact_pii("Call (555) 123-4567") == "Call [PHONE]"
    assert redact_pii("Call +1 555.123.4567") == "Call [PHONE]"


def test_ssn_replaced():
    assert redact_pii("SSN 123-45-6789 on file") == "SSN [SSN] on file"


def test_ip_replaced():
    assert redact_pii("Deployed to 10.0.12.7 today") == "Deployed to [IP] today"


def test_card_number_replaced():
    assert redact_pii("Card 4111 1111 1111 1111 declined") == "Card [ACCOUNT] declined"
    assert redact_pii("Card 4111-1111-1111-1111") == "Card [ACCOUNT]"


def test_salary_amounts():
    assert redact_pii("Negotiated a $85,000 salary") == "Negotiated a [SALARY]"
    assert redact_pii("My salary of $85,000 was approved") == "My salary of [SALARY] was approved"
    assert redact_pii("salary: $120k") == "salary: [SALARY]"


def test_deal_amounts():
    assert redact_pii("Closed a $2M deal with the client") == "Closed a [AMOUNT] deal with the client"
    assert redact_pii("Signed a contract worth $50,000") == "Signed a contract worth [AMOUNT]"


def test_urls():
    assert redact_pii("See https://wiki.internal.corp/page/42") == "See [URL]"
    assert redact_pii("Docs at https://example.com/guide") == "Docs at https://example.com/guide"
    assert redact_pii("Running on http://localhost:8080") == "Running on http://localhost:8080"


def test_work_metrics_survive():
    text = "Cut p95 latency by 40% across 3 services and merged 12 PRs in 2 hours"
    assert redact_pii(text) == text


def test_empty_input():
    assert redact_pii("") == ""
    assert redact_pii(None) is None


def test_idempotent():
    samples = [
        "Email bob@corp.com or call 555-123-4567 about the $1.5M deal",
        "salary: $120k, card 4111111111111111, ip 192.168.0.1",
        "SSN 123-45-6789 and https://secret.internal/x?id=5",
        "Nothing sensitive, just 25% faster builds",
        "$5,0001234salehttp://deal123.corp.net/terms",
        "call 5551234567https://crm.corp.net/lead",
    ]
    for text in samples:
        once = redact_pii(text)
        assert redact_pii(once) == once, f"Not idempotent for: {text!r}"


def test_url_glued_to_sensitive_text():
    assert redact_pii("$5,0001234salehttp://deal123.corp.net/terms") == "[AMOUNT] deal[URL]"
    assert redact_pii("call 5551234567https://crm.corp.net/lead") == "call [PHONE][URL]"


def test_redact_json_recurses_and_skips_keys():
    data = {
        "summary": "Emailed jane@acme.io",
        "items": ["call 555-123-4567", {"note": "ip 10.1.1.1"}],
        "count": 5,
        "ok": True,
        "missing": None,
        "targetId": "555-123-4567",
    }
    result = redact_json(data, skip_keys=frozenset({"targetId"}))

    assert result["summary"] == "Emailed [EMAIL]"
    assert result["items"] == ["call [PHONE]", {"note": "ip [IP]"}]
    assert result["count"] == 5
    assert result["ok"] is True
    assert result["missing"] is None
    assert result["targetId"] == "555-123-4567"
    # Input untouched
    assert data["summary"] == "Emailed jane@acme.io"


def test_detect_unredacted_pii():
    issues = detect_unredacted_pii("Reach me at a@b.co or 555-123-4567")
    assert "Email address detected" in issues
    assert "Phone number detected" in issues
    assert detect_unredacted_pii(redact_pii("Reach me at a@b.co or 555-123-4567")) == []
    assert detect_unredacted_pii("") == []
