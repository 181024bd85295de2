"""
Tests for the widget query pipeline state machine (guard -> execute ->
fallback ladder -> model repair -> shaping), with fake executor and oracle.
"""

import pytest

from dashquery.agents.widget.agent import WidgetQueryPipeline
from dashquery.utils.budget import RequestBudget
from dashquery.utils.cancellation import CancellationToken
from dashquery.utils.errors import ExecutionError, OracleError, QueryTimeoutError, RequestCancelled

from conftest import FakeExecutor, FakeOracle, rows

SCHEMA = "TABLE: orders\nCOLUMNS: id, customer_id, status, total, created_at"
PROMPT = "Show me paid orders by status this week"

# Every ladder pass changes this statement
LADDER_SQL = (
    "SELECT o.status AS status, COUNT(*) AS n FROM orders o "
    "INNER JOIN customers c ON c.id = o.customer_id "
    "WHERE o.created_at >= now() - interval '7 days' AND status = 'paid' "
    "GROUP BY o.status"
)

# No ladder pass changes this statement
PLAIN_SQL = "SELECT status, COUNT(*) AS n FROM orders GROUP BY status"

REPAIRED = {
    "title": "Orders by status (all time)",
    "sql": "SELECT status, COUNT(*) AS n FROM orders GROUP BY status ORDER BY n DESC",
    "explanation": "All orders grouped by status",
    "chartConfig": {"type": "bar", "xAxis": "status", "yAxis": "n"},
}


def widget(sql=LADDER_SQL, chart_type="bar", x="status", y="n"):
    return {
        "title": "Paid orders by status",
        "sql": sql,
        "explanation": "Orders this week",
        "chartConfig": {"type": chart_type, "xAxis": x, "yAxis": y, "title": "Orders"},
    }


def status_rows(n=3):
    return [{"status": f"s{i}", "n": str(10 * (i + 1))} for i in range(n)]


def run(ctx, w=None):
    return WidgetQueryPipeline(ctx).run(w or widget(), PROMPT, SCHEMA)


class TestFirstExecution:

    def test_rows_skip_ladder_and_repair(self, make_context):
        """Test first execution with rows skips ladder and repair"""
        executor = FakeExecutor([status_rows()])
        oracle = FakeOracle()
        result = run(make_context(executor, oracle))

        assert executor.call_count == 1
        assert oracle.call_count == 0
        assert result.meta.fallback_stage == "none"
        assert result.meta.raw_row_count == 3
        assert result.sql_error is None
        assert result.sql == executor.calls[0]
        assert result.sql.endswith("LIMIT 1000")
        assert [r["n"] for r in result.chart_data] == [10, 20, 30]

    def test_execution_error_is_terminal(self, make_context, execution_error):
        """Test first execution error fails the widget"""
        executor = FakeExecutor([execution_error])
        oracle = FakeOracle()
        result = run(make_context(executor, oracle))

        assert executor.call_count == 1
        assert oracle.call_count == 0
        assert result.sql_error == 'relation "orders" does not exist'
        assert result.chart_data == []
        assert result.meta.fallback_stage == "none"
        assert result.sql == LADDER_SQL

    def test_guard_violation_never_executes(self, make_context):
        """Test rejected SQL never reaches the executor"""
        executor = FakeExecutor()
        result = run(make_context(executor), widget(sql="DELETE FROM orders"))

        assert executor.call_count == 0
        assert "forbidden keyword 'DELETE'" in result.sql_error
        assert result.chart_data == []

    def test_missing_sql_returned_unexecuted(self, make_context):
        """Test widget without SQL returned unexecuted and without error"""
        executor = FakeExecutor()
        w = widget()
        del w["sql"]
        result = run(make_context(executor), w)

        assert executor.call_count == 0
        assert result.sql_error is None
        assert result.sql == ""
        assert result.chart_data == []
        assert result.title == "Paid orders by status"
        assert result.meta.fallback_stage == "none"

    def test_comment_only_sql_fails_as_empty(self, make_context):
        """Test comment-only SQL fails as empty"""
        executor = FakeExecutor()
        result = run(make_context(executor), widget(sql="-- nothing to run"))

        assert executor.call_count == 0
        assert result.sql_error == "SQL is empty."

    def test_timeout_passed_to_executor(self, make_context):
        """Test statement timeout handed to the executor"""
        executor = FakeExecutor([status_rows()])
        run(make_context(executor, statement_timeout_ms=4000))
        assert executor.timeouts == [4000]

    def test_mysql_row_cap(self, make_context):
        """Test MySQL statement capped at max rows"""
        executor = FakeExecutor([status_rows()])
        run(make_context(executor, dialect="mysql", max_rows=25))
        assert executor.calls[0].endswith("LIMIT 25")


class TestFallbackLadder:

    def test_second_pass_recovers(self, make_context):
        """Test second ladder pass recovers rows"""
        executor = FakeExecutor([[], [], status_rows(2)])
        oracle = FakeOracle()
        result = run(make_context(executor, oracle))

        assert executor.call_count == 3
        assert oracle.call_count == 0
        assert result.meta.fallback_stage == "strip_filters"
        assert result.meta.raw_row_count == 2
        assert "interval '12 months'" in executor.calls[1]
        assert "status = 'paid'" in executor.calls[1]
        assert "status = 'paid'" not in executor.calls[2]
        assert result.sql == executor.calls[2]

    def test_third_pass_relaxes_joins(self, make_context):
        """Test third ladder pass relaxes joins"""
        executor = FakeExecutor([[], [], [], status_rows(1)])
        result = run(make_context(executor))

        assert result.meta.fallback_stage == "relax_joins"
        assert "LEFT JOIN" in executor.calls[3]

    def test_unchanged_candidates_are_skipped(self, make_context):
        """Test unchanged rewrites skipped without execution"""
        executor = FakeExecutor()
        oracle = FakeOracle([{"explanation": "no idea"}])
        result = run(make_context(executor, oracle), widget(sql=PLAIN_SQL))

        assert executor.call_count == 1
        assert oracle.call_count == 1
        # response without sql is a no-op: empty success, not a failure
        assert result.sql_error is None
        assert result.chart_data == []
        assert result.meta.fallback_stage == "none"
        assert result.meta.raw_row_count == 0

    def test_ladder_execution_error_advances(self, make_context):
        """Test ladder execution error moves to the next pass"""
        executor = FakeExecutor([[], ExecutionError("column c.region does not exist"), status_rows(2)])
        result = run(make_context(executor))

        assert executor.call_count == 3
        assert result.sql_error is None
        assert result.meta.fallback_stage == "strip_filters"

    def test_ladder_timeout_is_terminal(self, make_context):
        """Test ladder timeout fails the widget"""
        executor = FakeExecutor([[], QueryTimeoutError("Query timed out after 15000 ms")])
        oracle = FakeOracle()
        result = run(make_context(executor, oracle))

        assert executor.call_count == 2
        assert oracle.call_count == 0
        assert "timed out" in result.sql_error
        assert result.chart_data == []

    def test_rewrites_are_guarded(self, make_context):
        """Test every rewrite capped by the guard"""
        executor = FakeExecutor([[], [], [], [], status_rows(1)])
        oracle = FakeOracle([REPAIRED])
        run(make_context(executor, oracle, max_rows=7))

        for sql in executor.calls:
            assert sql.endswith("LIMIT 7")
            assert sql.count("LIMIT") == 1


class TestModelRepair:

    def test_exactly_one_repair_after_ladder(self, make_context):
        """Test one model repair after an empty ladder"""
        executor = FakeExecutor([[], [], [], [], status_rows(2)])
        oracle = FakeOracle([REPAIRED])
        result = run(make_context(executor, oracle))

        assert executor.call_count == 5
        assert oracle.call_count == 1
        assert result.meta.fallback_stage == "llm_repair"
        assert result.title == REPAIRED["title"]
        assert result.explanation == REPAIRED["explanation"]
        assert result.sql == REPAIRED["sql"] + " LIMIT 1000"
        assert result.chart_config.y_axis == "n"
        assert result.meta.raw_row_count == 2

    def test_repair_with_empty_result_is_not_retried(self, make_context):
        """Test empty repair result not retried"""
        executor = FakeExecutor()
        oracle = FakeOracle([REPAIRED])
        result = run(make_context(executor, oracle))

        assert executor.call_count == 5
        assert oracle.call_count == 1
        assert result.sql_error is None
        assert result.chart_data == []
        assert result.meta.fallback_stage == "llm_repair"

    def test_nested_widget_response(self, make_context):
        """Test repair response nested under widget"""
        executor = FakeExecutor([[], [], [], [], status_rows(1)])
        oracle = FakeOracle([{"widget": REPAIRED}])
        result = run(make_context(executor, oracle))

        assert result.meta.fallback_stage == "llm_repair"
        assert result.title == REPAIRED["title"]

    def test_prompt_uses_last_sql_tried(self, make_context):
        """Test repair prompt carries the last SQL tried"""
        executor = FakeExecutor()
        oracle = FakeOracle([{}])
        run(make_context(executor, oracle))

        prompt = oracle.calls[0][1]["content"]
        assert executor.calls[-1] in prompt
        assert "LEFT JOIN" in executor.calls[-1]
        assert SCHEMA in prompt
        assert PROMPT in prompt
        assert "Paid orders by status" in prompt

    def test_repaired_sql_violation_is_terminal(self, make_context):
        """Test rejected repaired SQL fails the widget"""
        executor = FakeExecutor()
        oracle = FakeOracle([{"sql": "DROP TABLE orders"}])
        result = run(make_context(executor, oracle), widget(sql=PLAIN_SQL))

        assert executor.call_count == 1
        assert "forbidden keyword 'DROP'" in result.sql_error
        assert result.chart_data == []

    def test_oracle_failure_is_terminal(self, make_context):
        """Test oracle failure fails the widget"""
        oracle = FakeOracle([OracleError("LLM call timed out after 5.0s")])
        result = run(make_context(FakeExecutor(), oracle), widget(sql=PLAIN_SQL))

        assert oracle.call_count == 1
        assert result.sql_error == "LLM call timed out after 5.0s"

    def test_malformed_json_is_terminal(self, make_context):
        """Test malformed repair JSON fails the widget"""
        result = run(make_context(FakeExecutor(), FakeOracle(["not json at all"])), widget(sql=PLAIN_SQL))
        assert "not JSON" in result.sql_error

    def test_invalid_repaired_title_is_terminal(self, make_context):
        """Test non-string repaired title fails the widget"""
        executor = FakeExecutor()
        oracle = FakeOracle([{**REPAIRED, "title": 2024}])
        result = run(make_context(executor, oracle), widget(sql=PLAIN_SQL))

        assert executor.call_count == 1
        assert "invalid widget" in result.sql_error
        assert result.title == "Paid orders by status"
        assert result.chart_data == []

    def test_invalid_repaired_chart_config_is_terminal(self, make_context):
        """Test malformed repaired chartConfig fails the widget"""
        executor = FakeExecutor()
        oracle = FakeOracle([{**REPAIRED, "chartConfig": {"type": "bar", "title": 5}}])
        result = run(make_context(executor, oracle), widget(sql=PLAIN_SQL))

        assert executor.call_count == 1
        assert "invalid widget" in result.sql_error
        assert result.chart_config.title == "Orders"

    def test_repair_execution_error_is_terminal(self, make_context):
        """Test repair execution error fails the widget"""
        executor = FakeExecutor([[], ExecutionError("syntax error at or near FROM")])
        result = run(make_context(executor, FakeOracle([REPAIRED])), widget(sql=PLAIN_SQL))

        assert executor.call_count == 2
        assert result.sql_error == "syntax error at or near FROM"

    def test_exhausted_budget_skips_oracle(self, make_context):
        """Test exhausted budget skips the repair call"""
        oracle = FakeOracle([REPAIRED])
        ctx = make_context(oracle=oracle, budget=RequestBudget(30))

        def use_up_budget(sql):
            ctx.budget.seconds = 0
            return []

        ctx.executor = FakeExecutor([use_up_budget])
        result = WidgetQueryPipeline(ctx).run(widget(sql=PLAIN_SQL), PROMPT, SCHEMA)

        assert ctx.executor.call_count == 1
        assert oracle.call_count == 0
        assert result.sql_error == "Request time budget exhausted before model repair."

    def test_exhausted_budget_fails_before_execution(self, make_context):
        """Test exhausted budget fails before executing"""
        executor = FakeExecutor()
        result = run(make_context(executor, budget=RequestBudget(0)))

        assert executor.call_count == 0
        assert "budget exhausted" in result.sql_error


class TestShaping:

    def test_limiter_bypass_refetches(self, make_context):
        """Test limiter emptying data triggers a refetch"""
        executor = FakeExecutor(default=status_rows(10))
        limiter_calls = []

        def limiter(data, chart_config):
            limiter_calls.append(len(data))
            return []

        result = run(make_context(executor, chart_limiter=limiter))

        assert limiter_calls == [10]
        assert executor.call_count == 2
        assert executor.calls[1] == executor.calls[0]
        assert len(result.chart_data) == 10
        assert result.meta.raw_row_count == 10
        assert result.meta.post_limit_count == 10
        assert result.meta.fallback_stage.endswith("+bypass_limiter")
        assert result.meta.fallback_stage == "none+bypass_limiter"

    def test_bypass_keeps_ladder_stage(self, make_context):
        """Test bypass suffix keeps the ladder stage"""
        executor = FakeExecutor([[], status_rows(4)], default=status_rows(4))
        result = run(make_context(executor, chart_limiter=lambda data, cfg: []))
        assert result.meta.fallback_stage == "widen_date+bypass_limiter"

    def test_limiter_skipped_when_axes_missing(self, make_context):
        """Test limiter skipped when axes are missing"""
        limiter_calls = []

        def limiter(data, chart_config):
            limiter_calls.append(1)
            return data

        executor = FakeExecutor([status_rows(3)])
        result = run(make_context(executor, chart_limiter=limiter), widget(x="month"))

        assert limiter_calls == []
        assert len(result.chart_data) == 3

    def test_rows_clamped(self, make_context):
        """Test shaped rows clamped to 50"""
        executor = FakeExecutor([rows(80, x="status", y="n")])
        result = run(make_context(executor), widget(chart_type="kpi"))

        assert result.meta.raw_row_count == 80
        assert result.meta.post_limit_count == 50
        assert len(result.chart_data) == 50

    def test_series_down_sampled(self, make_context):
        """Test line series down-sampled to 24 points"""
        executor = FakeExecutor([rows(48, x="month", y="total")])
        result = run(make_context(executor), widget(chart_type="line", x="month", y="total"))
        assert result.meta.post_limit_count == 24

    def test_result_dict_shape(self, make_context):
        """Test result dict uses the camelCase wire shape"""
        result = run(make_context(FakeExecutor([status_rows(1)])))
        data = result.to_dict()

        assert set(data) == {"title", "sql", "explanation", "chartConfig", "chartData", "sqlError", "meta"}
        assert data["meta"] == {"rawRowCount": 1, "postLimitCount": 1, "fallbackStage": "none"}
        assert data["chartConfig"]["xAxis"] == "status"


class TestCancellation:

    def test_cancelled_request_propagates(self, make_context):
        """Test cancellation raised out of the pipeline"""
        token = CancellationToken()
        token.cancel()
        executor = FakeExecutor()

        with pytest.raises(RequestCancelled):
            run(make_context(executor, cancel_token=token))
        assert executor.call_count == 0
