"""Test gateway orchestration with a mocked pool cache and executor."""
import pytest
from sqlgate.db import QueryOutcome
from sqlgate.gateway import (
    DESCRIBE_COLUMNS_SQL,
    DESCRIBE_INDEXES_SQL,
    LIST_DATABASES_SQL,
    LIST_TABLES_SQL,
    Gateway,
)
from sqlgate.governance.policy import PermissionPolicy
from sqlgate.utils.errors import (
    MissingDatabaseError,
    PermissionDenied,
    UnknownSourceError,
)


@pytest.fixture
def shop_policy():
    return PermissionPolicy(
        allowed_sql_types=("SELECT", "INSERT"),
        table_patterns=("open_*",),
        allowed_databases=("shop", "shop_*"),
        read_only=False,
    )


@pytest.fixture
def gateway(source_factory, registry_factory, mock_pools, mock_executor, shop_policy):
    registry = registry_factory(
        source_factory("main", policy=shop_policy, database="shop"),
        source_factory("nodb", policy=shop_policy, database=None),
    )
    return Gateway(registry, mock_pools, executor=mock_executor, max_rows=500)


class TestQuery:

    async def test_permitted_query_executes(self, gateway, mock_pools, mock_executor):
        result = await gateway.query("SELECT * FROM open_orders")
        assert result.source == "main"
        assert result.rows == [{"id": 1, "name": "Alice"}]
        assert result.row_count == 1
        mock_pools.get.assert_awaited_once()
        source_arg, db_arg = mock_pools.get.await_args.args
        assert source_arg.name == "main"
        assert db_arg is None
        mock_executor.assert_awaited_once_with(
            "pool-sentinel", "SELECT * FROM open_orders", None, 500
        )

    async def test_original_text_is_executed(self, gateway, mock_executor):
        sql = "  select * from open_orders  "
        await gateway.query(sql)
        assert mock_executor.await_args.args[1] == sql

    async def test_caller_max_rows(self, gateway, mock_executor):
        await gateway.query("SELECT 1", max_rows=5)
        assert mock_executor.await_args.args[3] == 5

    async def test_explicit_database_selects_pool(self, gateway, mock_pools):
        await gateway.query("SELECT * FROM open_orders", database="shop_eu")
        assert mock_pools.get.await_args.args[1] == "shop_eu"

    async def test_statement_denial_never_executes(self, gateway, mock_pools, mock_executor):
        with pytest.raises(PermissionDenied, match="SQL type 'DELETE'"):
            await gateway.query("DELETE FROM open_orders")
        mock_pools.get.assert_not_awaited()
        mock_executor.assert_not_awaited()

    async def test_table_denial(self, gateway, mock_executor):
        with pytest.raises(PermissionDenied) as exc_info:
            await gateway.query("SELECT * FROM secret_users")
        assert exc_info.value.reason == "Access to table 'secret_users' is not allowed"
        mock_executor.assert_not_awaited()

    async def test_fail_closed_on_single_bad_reference(self, gateway, mock_executor):
        sql = "SELECT * FROM open_a JOIN open_b ON 1=1 JOIN hidden ON 1=1"
        with pytest.raises(PermissionDenied, match="hidden"):
            await gateway.query(sql)
        mock_executor.assert_not_awaited()

    async def test_requested_database_checked(self, gateway):
        with pytest.raises(PermissionDenied, match="database 'hr'"):
            await gateway.query("SELECT * FROM open_orders", database="hr")

    async def test_allowed_schema_prefix_cannot_reach_other_database(
        self, gateway, mock_pools, mock_executor
    ):
        """The connected database is checked whatever the tables are qualified with."""
        with pytest.raises(PermissionDenied) as exc_info:
            await gateway.query("SELECT * FROM shop.open_salaries", database="hr")
        assert exc_info.value.reason == "Access to database 'hr' is not allowed"
        mock_pools.get.assert_not_awaited()
        mock_executor.assert_not_awaited()

    async def test_query_without_tables_checks_database(
        self, gateway, mock_pools, mock_executor
    ):
        with pytest.raises(PermissionDenied, match="database 'hr'"):
            await gateway.query("SELECT 1", database="hr")
        mock_pools.get.assert_not_awaited()
        mock_executor.assert_not_awaited()

    async def test_schema_qualifier_is_not_a_database(self, gateway, mock_pools):
        result = await gateway.query("SELECT * FROM public.open_orders")
        assert result.source == "main"
        assert mock_pools.get.await_args.args[1] is None

    async def test_schema_qualified_table_still_checked(self, gateway, mock_executor):
        with pytest.raises(PermissionDenied) as exc_info:
            await gateway.query("SELECT * FROM public.secret_users")
        assert exc_info.value.reason == "Access to table 'secret_users' is not allowed"
        mock_executor.assert_not_awaited()

    async def test_no_database_anywhere_skips_database_check(self, gateway):
        result = await gateway.query("SELECT * FROM open_orders", source="nodb")
        assert result.source == "nodb"

    async def test_unknown_source(self, gateway, mock_executor):
        with pytest.raises(UnknownSourceError, match="Available sources: main, nodb"):
            await gateway.query("SELECT 1", source="other")
        mock_executor.assert_not_awaited()


class TestListDatabases:

    async def test_filtered_by_database_patterns(self, gateway, mock_executor):
        mock_executor.return_value = QueryOutcome(
            rows=[{"datname": "shop"}, {"datname": "hr"}, {"datname": "shop_eu"}],
            row_count=3,
        )
        result = await gateway.list_databases()
        assert result.names == ["shop", "shop_eu"]
        assert mock_executor.await_args.args[1] == LIST_DATABASES_SQL


class TestListTables:

    async def test_requires_database(self, gateway, mock_executor):
        with pytest.raises(MissingDatabaseError):
            await gateway.list_tables(source="nodb")
        mock_executor.assert_not_awaited()

    async def test_database_must_be_allowed(self, gateway, mock_executor):
        with pytest.raises(PermissionDenied, match="database 'hr'"):
            await gateway.list_tables(database="hr")
        mock_executor.assert_not_awaited()

    async def test_filters_by_policy_then_pattern(self, gateway, mock_pools, mock_executor):
        mock_executor.return_value = QueryOutcome(
            rows=[
                {"table_name": "open_orders"},
                {"table_name": "open_items"},
                {"table_name": "secret_users"},
            ],
            row_count=3,
        )
        result = await gateway.list_tables(pattern="*ORDERS")
        assert result.names == ["open_orders"]
        assert result.database == "shop"
        assert mock_pools.get.await_args.args[1] == "shop"
        assert mock_executor.await_args.args[1] == LIST_TABLES_SQL


class TestDescribeTable:

    async def test_denied_table(self, gateway, mock_executor):
        with pytest.raises(PermissionDenied, match="table 'secret_users'"):
            await gateway.describe_table("secret_users")
        mock_executor.assert_not_awaited()

    async def test_requires_database(self, gateway):
        with pytest.raises(MissingDatabaseError):
            await gateway.describe_table("open_orders", source="nodb")

    async def test_columns_and_indexes(self, gateway, mock_executor, sample_columns):
        mock_executor.side_effect = [
            QueryOutcome(rows=sample_columns, row_count=2),
            QueryOutcome(rows=[{"indexname": "pk", "indexdef": "CREATE ..."}], row_count=1),
        ]
        result = await gateway.describe_table("open_orders", database="shop_eu")
        assert result.database == "shop_eu"
        assert result.columns == sample_columns
        assert result.indexes[0]["indexname"] == "pk"
        calls = mock_executor.await_args_list
        assert calls[0].args[1:3] == (DESCRIBE_COLUMNS_SQL, ("open_orders",))
        assert calls[1].args[1:3] == (DESCRIBE_INDEXES_SQL, ("open_orders",))


class TestInspection:

    def test_list_sources(self, gateway):
        listing = gateway.list_sources()
        assert [s.name for s in listing.sources] == ["main", "nodb"]
        assert listing.default_source == "main"
        assert listing.sources[0].is_default
        assert listing.sources[0].connection == "postgres@127.0.0.1:5432/shop"
        assert listing.sources[1].connection == "postgres@127.0.0.1:5432"

    def test_get_permissions(self, gateway, shop_policy):
        view = gateway.get_permissions("nodb")
        assert view.source == "nodb"
        assert view.policy == shop_policy

    def test_get_permissions_unknown(self, gateway):
        with pytest.raises(UnknownSourceError):
            gateway.get_permissions("zzz")
