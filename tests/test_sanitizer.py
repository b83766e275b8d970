from docforge.diagrams.sanitizer import sanitize_mermaid_chart


def test_subroutine_label_is_quoted():
    assert sanitize_mermaid_chart("A[[Label]]") == 'A[["Label"]]'


def test_rectangle_labels_are_quoted_per_line():
    chart = "graph TD\n  A[Start] --> B[[Process]]\n  B --> C[End]"
    assert sanitize_mermaid_chart(chart) == (
        'graph TD\n  A["Start"] --> B[["Process"]]\n  B --> C["End"]'
    )


def test_quotes_and_angle_brackets_are_escaped():
    chart = 'graph LR\n  A[User "admin"] --> B[x < y]'
    assert sanitize_mermaid_chart(chart) == 'graph LR\n  A["User \\"admin\\""] --> B["x &lt; y"]'


def test_already_quoted_label_is_unwrapped_once():
    assert sanitize_mermaid_chart('A["Ready"]') == 'A["Ready"]'


def test_empty_label_becomes_empty_string():
    assert sanitize_mermaid_chart("A[]") == 'A[""]'
    assert sanitize_mermaid_chart("A[   ]") == 'A[""]'


def test_chart_without_labels_is_unchanged():
    chart = "graph TD\n  A --> B\n  B -.-> C"
    assert sanitize_mermaid_chart(chart) == chart


def test_empty_chart():
    assert sanitize_mermaid_chart("") == ""


def test_sanitizing_is_idempotent():
    charts = [
        "A[[Label]]",
        'graph LR\n  A[User "admin"] --> B[x < y]',
        "flowchart TD\n  api.gateway[API Gateway] --> svc-1[[Worker]]\n  svc-1 --> db[(Postgres)]",
        "A[]",
        'A["]',
    ]
    for chart in charts:
        once = sanitize_mermaid_chart(chart)
        assert sanitize_mermaid_chart(once) == once
