"""Tests for placeholder substitution and custom filters."""

from dtsli.context import EvaluationContext, SLIFilter, apply_custom_filters, substitute_placeholders


def make_context(**overrides):
    values = dict(
        project="sockshop",
        stage="staging",
        service="carts",
        deployment="primary",
        test_strategy="performance",
        labels={"owner": "team a", "buildId": "42"},
        keptn_context="ctx-123",
        event="evt-1",
        source="lighthouse",
    )
    values.update(overrides)
    return EvaluationContext(**values)


class TestSubstitutePlaceholders:
    """Tests for substitute_placeholders."""

    def test_standard_placeholders(self):
        template = "$PROJECT/$STAGE/$SERVICE/$DEPLOYMENT/$TESTSTRATEGY/$CONTEXT/$EVENT/$SOURCE"
        result = substitute_placeholders(template, make_context(), environ={})
        assert result == "sockshop/staging/carts/primary/performance/ctx-123/evt-1/lighthouse"

    def test_label_values_are_query_escaped(self):
        result = substitute_placeholders("owner=$LABEL.owner;b=$LABEL.buildId", make_context(), environ={})
        assert result == "owner=team+a;b=42"

    def test_env_placeholders(self):
        result = substitute_placeholders(
            "tag($ENV.DT_TAG)", make_context(), environ={"DT_TAG": "env:prod"}
        )
        assert result == "tag(env%3Aprod)"

    def test_unescaped_values_kept_verbatim(self):
        ctx = make_context(service="my cart")
        template = "application='$SERVICE' AND owner='$LABEL.owner' AND tag='$ENV.DT_TAG'"
        result = substitute_placeholders(template, ctx, environ={"DT_TAG": "env:prod"}, escape=False)
        assert result == "application='my cart' AND owner='team a' AND tag='env:prod'"
        escaped = substitute_placeholders("application='$SERVICE'", ctx, environ={})
        assert escaped == "application='my+cart'"

    def test_unknown_placeholders_left_verbatim(self):
        result = substitute_placeholders("$LABEL.missing $ENV.MISSING $FOO", make_context(), environ={})
        assert result == "$LABEL.missing $ENV.MISSING $FOO"

    def test_empty_values_substitute_to_empty(self):
        ctx = EvaluationContext(project="p", stage="s", service="v")
        assert substitute_placeholders("[$DEPLOYMENT]", ctx, environ={}) == "[]"


class TestApplyCustomFilters:
    """Tests for apply_custom_filters."""

    def test_replaces_lower_and_upper_case_keys(self):
        filters = [SLIFilter(key="dimension", value="'carts'")]
        assert apply_custom_filters("$dimension-$DIMENSION", filters) == "carts-carts"

    def test_strips_double_quotes(self):
        filters = [SLIFilter(key="host", value='"web-1"')]
        assert apply_custom_filters("eq(host,$HOST)", filters) == "eq(host,web-1)"

    def test_no_filters_is_identity(self):
        assert apply_custom_filters("metricSelector=x", []) == "metricSelector=x"
