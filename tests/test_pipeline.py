"""Tests for the generic extraction pipeline."""

import logging

import pytest

from dbx_metadata.database.base import WarningLog
from dbx_metadata.database.generic import generic_strategy
from dbx_metadata.database.models import (
    ForeignKeyAction,
    IndexType,
    ParameterMode,
    Procedure,
    ProcedureType,
    SortOrder,
    Trigger,
)
from dbx_metadata.database.pipeline import (
    Dialect,
    ExtractionPipeline,
    HookContext,
    map_foreign_key_action,
    map_index_type,
    map_parameter_mode,
    map_sort_order,
)
from dbx_metadata.errors import CatalogError, MetadataExtractionError
from tests.fixtures import access_denied, column_row, permission_denied


@pytest.fixture
def pipeline():
    return generic_strategy()


class TestCodeMapping:
    """Test mapping of standard-catalog codes to model enums."""

    @pytest.mark.parametrize("code,expected", [
        (0, ForeignKeyAction.CASCADE),
        (1, ForeignKeyAction.RESTRICT),
        (2, ForeignKeyAction.SET_NULL),
        (3, ForeignKeyAction.NO_ACTION),
        (4, ForeignKeyAction.SET_DEFAULT),
        (99, ForeignKeyAction.NO_ACTION),
        (None, ForeignKeyAction.NO_ACTION),
    ])
    def test_foreign_key_action(self, code, expected):
        assert map_foreign_key_action(code) == expected

    @pytest.mark.parametrize("code,expected", [
        (1, IndexType.CLUSTERED),
        (2, IndexType.HASH),
        (3, IndexType.BTREE),
        (0, IndexType.OTHER),
        (None, IndexType.OTHER),
    ])
    def test_index_type(self, code, expected):
        assert map_index_type(code) == expected

    def test_sort_order(self):
        assert map_sort_order("A") == SortOrder.ASC
        assert map_sort_order("D") == SortOrder.DESC
        assert map_sort_order(None) == SortOrder.UNKNOWN
        assert map_sort_order("X") == SortOrder.UNKNOWN

    def test_parameter_mode(self):
        assert map_parameter_mode(1) == ParameterMode.IN
        assert map_parameter_mode(2) == ParameterMode.INOUT
        assert map_parameter_mode(4) == ParameterMode.OUT
        assert map_parameter_mode(5) == ParameterMode.RETURN
        assert map_parameter_mode(3) == ParameterMode.IN
        assert map_parameter_mode(None) == ParameterMode.IN


class TestSchemaListing:
    """Test schema enumeration and filtering."""

    def test_system_schemas_excluded_and_sorted(self, pipeline, shop_catalog):
        shop_catalog.add_schema("pg_catalog").add_schema("analytics").add_schema("")
        assert pipeline.list_schemas(shop_catalog) == ["analytics", "shop"]

    def test_falls_back_to_catalogs(self, pipeline, fake_catalog):
        fake_catalog.catalogs = ["zeta", "alpha", "mysql"]
        assert pipeline.list_schemas(fake_catalog) == ["alpha", "zeta"]

    def test_failure_is_wrapped(self, pipeline, fake_catalog):
        fake_catalog.fail("get_schemas")
        with pytest.raises(MetadataExtractionError) as exc_info:
            pipeline.list_schemas(fake_catalog)
        assert exc_info.value.operation == "list_schemas"
        assert isinstance(exc_info.value.cause, CatalogError)


class TestColumns:
    """Test column extraction."""

    def test_sorted_by_ordinal_position(self, pipeline, shop_catalog):
        columns = pipeline.extract_columns(shop_catalog, None, "shop", "customers")
        assert [c.name for c in columns] == ["id", "name", "email"]
        assert [c.ordinal_position for c in columns] == [1, 2, 3]

    def test_row_mapping(self, pipeline, shop_catalog):
        columns = {c.name: c for c in pipeline.extract_columns(shop_catalog, None, "shop", "orders")}
        total = columns["total"]
        assert total.data_type == "DECIMAL"
        assert total.size == 10
        assert total.precision == 10
        assert total.scale == 2
        assert total.default_value == "0"
        assert columns["id"].nullable is False
        assert total.nullable is True

    def test_auto_increment(self, pipeline, shop_catalog):
        columns = {c.name: c for c in pipeline.extract_columns(shop_catalog, None, "shop", "customers")}
        assert columns["id"].auto_increment is True
        assert columns["name"].auto_increment is False

    def test_vendor_comments_fill_only_missing(self, shop_catalog):
        comments = {"email": "vendor email", "name": "vendor name"}
        pipeline = ExtractionPipeline(Dialect("Test", column_comments=lambda ctx, schema, table: comments))

        columns = {c.name: c for c in pipeline.extract_columns(shop_catalog, None, "shop", "customers")}

        assert columns["email"].comment == "Contact address"
        assert columns["name"].comment == "vendor name"
        assert columns["id"].comment is None

    def test_failing_comment_hook_is_silent(self, shop_catalog):
        def broken(ctx, schema, table):
            raise RuntimeError("no access")

        pipeline = ExtractionPipeline(Dialect("Test", column_comments=broken))
        columns = pipeline.extract_columns(shop_catalog, None, "shop", "customers")
        assert len(columns) == 3


class TestTableExtraction:
    """Test extraction of a single table."""

    def test_primary_key_flags_columns(self, pipeline, shop_catalog):
        table = pipeline.extract_table(shop_catalog, None, "shop", "customers")
        assert table.primary_key.name == "pk_customers"
        assert table.primary_key.columns == ("id",)
        assert table.get_column("id").primary_key is True
        assert table.get_column("name").primary_key is False

    def test_composite_primary_key_ordered_by_key_seq(self, pipeline, fake_catalog):
        fake_catalog.add_table("s", "t", [column_row("a", 1), column_row("b", 2)])
        fake_catalog.primary_keys[("s", "t")] = [
            {"column_name": "b", "key_seq": 1, "pk_name": "pk_t"},
            {"column_name": "a", "key_seq": 2, "pk_name": "pk_t"},
        ]
        table = pipeline.extract_table(fake_catalog, None, "s", "t")
        assert table.primary_key.columns == ("b", "a")

    def test_absent_primary_key(self, pipeline, fake_catalog):
        fake_catalog.add_table("s", "log", [column_row("msg", 1, "TEXT")])
        table = pipeline.extract_table(fake_catalog, None, "s", "log")
        assert table.primary_key is None
        assert not any(c.primary_key for c in table.columns)

    def test_foreign_key(self, pipeline, shop_catalog):
        table = pipeline.extract_table(shop_catalog, None, "shop", "orders")
        assert len(table.foreign_keys) == 1
        fk = table.foreign_keys[0]
        assert fk.name == "fk_orders_customer"
        assert fk.columns == ("customer_id",)
        assert fk.referenced_schema == "shop"
        assert fk.referenced_table == "customers"
        assert fk.referenced_columns == ("id",)
        assert fk.on_update == ForeignKeyAction.NO_ACTION
        assert fk.on_delete == ForeignKeyAction.CASCADE

    def test_composite_foreign_key_merged(self, pipeline, fake_catalog):
        fake_catalog.add_table("s", "line", [column_row("order_id", 1), column_row("order_no", 2)])
        row = {"fk_name": "fk_line", "pktable_schema": "s", "pktable_name": "orders", "update_rule": 1, "delete_rule": 2}
        fake_catalog.imported_keys[("s", "line")] = [
            dict(row, fkcolumn_name="order_id", pkcolumn_name="id"),
            dict(row, fkcolumn_name="order_no", pkcolumn_name="no"),
        ]
        fks = pipeline.extract_foreign_keys(fake_catalog, None, "s", "line")
        assert len(fks) == 1
        assert fks[0].columns == ("order_id", "order_no")
        assert fks[0].referenced_columns == ("id", "no")
        assert fks[0].on_update == ForeignKeyAction.RESTRICT
        assert fks[0].on_delete == ForeignKeyAction.SET_NULL

    def test_unnamed_foreign_key_gets_synthesized_name(self, pipeline, fake_catalog):
        fake_catalog.add_table("s", "child", [column_row("parent_id", 1)])
        fake_catalog.imported_keys[("s", "child")] = [
            {"fk_name": None, "fkcolumn_name": "parent_id", "pkcolumn_name": "id", "pktable_name": "parent"},
        ]
        fks = pipeline.extract_foreign_keys(fake_catalog, None, "s", "child")
        assert fks[0].name == "FK_child_parent_id"

    def test_statistics_rows_skipped(self, pipeline, shop_catalog):
        indexes = pipeline.extract_indexes(shop_catalog, None, "shop", "orders")
        assert [i.name for i in indexes] == ["idx_orders_customer"]
        index = indexes[0]
        assert index.unique is False
        assert index.type == IndexType.BTREE
        assert index.column_names == ["customer_id"]
        assert index.columns[0].sort_order == SortOrder.ASC

    def test_multi_column_index_merged(self, pipeline, fake_catalog):
        fake_catalog.add_table("s", "t", [column_row("a", 1), column_row("b", 2)])
        base = {"index_name": "uq_t", "non_unique": False, "type": 2}
        fake_catalog.index_info[("s", "t")] = [
            dict(base, column_name="a", asc_or_desc="A", ordinal_position=1),
            dict(base, column_name="b", asc_or_desc="D", ordinal_position=2),
        ]
        indexes = pipeline.extract_indexes(fake_catalog, None, "s", "t")
        assert len(indexes) == 1
        assert indexes[0].unique is True
        assert indexes[0].type == IndexType.HASH
        assert [c.sort_order for c in indexes[0].columns] == [SortOrder.ASC, SortOrder.DESC]

    def test_best_effort_hooks_populate_table(self, shop_catalog):
        dialect = Dialect(
            "Test",
            table_comment=lambda ctx, schema, table: f"{schema}.{table}",
            row_count=lambda ctx, schema, table: 7,
            table_triggers=lambda ctx, schema, table: [Trigger(name="trg", table_name=table)],
        )
        table = ExtractionPipeline(dialect).extract_table(shop_catalog, None, "shop", "customers")
        assert table.comment == "shop.customers"
        assert table.row_count == 7
        assert [t.name for t in table.triggers] == ["trg"]

    def test_best_effort_hook_failures_are_silent(self, shop_catalog, caplog):
        def broken(*args):
            raise CatalogError("denied", sql_state="42501")

        dialect = Dialect("Test", table_comment=broken, row_count=broken, table_triggers=broken)
        with caplog.at_level(logging.DEBUG, logger="dbx_metadata"):
            table = ExtractionPipeline(dialect).extract_table(shop_catalog, None, "shop", "customers")

        assert table.comment is None
        assert table.row_count is None
        assert table.triggers == ()
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_column_failure_raises_with_context(self, pipeline, shop_catalog):
        shop_catalog.fail("get_columns", "orders")
        with pytest.raises(MetadataExtractionError) as exc_info:
            pipeline.extract_table(shop_catalog, None, "shop", "orders")
        assert exc_info.value.object_name == "orders"
        assert exc_info.value.sql_state == "HY000"


class TestSchemaExtraction:
    """Test extraction of a whole schema."""

    def test_tables_and_views(self, pipeline, shop_catalog):
        schema = pipeline.extract_schema(shop_catalog, "shop")
        assert schema.name == "shop"
        assert [t.name for t in schema.tables] == ["customers", "orders"]
        assert [v.name for v in schema.views] == ["active_customers"]
        assert schema.views[0].definition is None
        assert schema.views[0].updatable is False
        assert schema.views[0].comment is None

    def test_view_hooks(self, shop_catalog):
        pipeline = ExtractionPipeline(Dialect(
            "Test",
            view_definition=lambda ctx, schema, view: "SELECT 1",
            view_comment=lambda ctx, schema, view: f"{schema}.{view} summary",
        ))
        view = pipeline.extract_view(shop_catalog, None, "shop", "active_customers")
        assert view.definition == "SELECT 1"
        assert view.comment == "shop.active_customers summary"

    def test_failing_table_is_skipped_with_warning(self, pipeline, fake_catalog):
        for name in ("a", "b", "c"):
            fake_catalog.add_table("s", name, [column_row("id", 1)])
        fake_catalog.fail("get_columns", "b", CatalogError("boom"))
        warnings = WarningLog()

        schema = pipeline.extract_schema(fake_catalog, "s", warnings)

        assert [t.name for t in schema.tables] == ["a", "c"]
        assert warnings.messages == ["Failed to extract table b: boom"]

    def test_failing_view_is_skipped_with_warning(self, pipeline, shop_catalog):
        shop_catalog.fail("get_columns", "active_customers", CatalogError("gone"))
        warnings = WarningLog()

        schema = pipeline.extract_schema(shop_catalog, "shop", warnings)

        assert schema.views == ()
        assert len(schema.tables) == 2
        assert warnings.messages == ["Failed to extract view active_customers: gone"]

    def test_table_listing_failure_raises(self, pipeline, shop_catalog):
        shop_catalog.fail("get_tables", "shop", permission_denied())
        with pytest.raises(MetadataExtractionError) as exc_info:
            pipeline.extract_schema(shop_catalog, "shop")
        assert exc_info.value.is_permission_error

    def test_schema_owner_hook(self, shop_catalog):
        pipeline = ExtractionPipeline(Dialect("Test", schema_owner=lambda ctx, schema: "dba"))
        assert pipeline.extract_schema(shop_catalog, "shop").owner == "dba"


class TestProcedures:
    """Test procedure extraction paths."""

    def _add_procedures(self, catalog):
        catalog.procedures["s"] = [
            {"procedure_name": "zap", "procedure_type": 1, "remarks": "cleanup"},
            {"procedure_name": "add", "procedure_type": 2},
        ]
        catalog.procedure_columns[("s", "add")] = [
            {"column_name": "x", "type_name": "int", "column_type": 1, "ordinal_position": 1},
            {"column_name": "result", "type_name": "int", "column_type": 5, "ordinal_position": 0},
        ]

    def test_standard_procedures(self, pipeline, fake_catalog):
        self._add_procedures(fake_catalog)
        procedures = pipeline.extract_procedures(fake_catalog, None, "s")

        assert [p.name for p in procedures] == ["add", "zap"]
        add, zap = procedures
        assert add.type == ProcedureType.FUNCTION
        assert [(p.name, p.mode) for p in add.parameters] == [("x", ParameterMode.IN), ("result", ParameterMode.RETURN)]
        assert zap.type == ProcedureType.PROCEDURE
        assert zap.comment == "cleanup"

    def test_parameter_failure_keeps_procedure(self, pipeline, fake_catalog):
        self._add_procedures(fake_catalog)
        fake_catalog.fail("get_procedure_columns", "add")

        procedures = pipeline.extract_procedures(fake_catalog, None, "s")

        assert procedures[0].name == "add"
        assert procedures[0].parameters == ()

    def test_standard_failure_becomes_schema_warning(self, pipeline, shop_catalog):
        shop_catalog.fail("get_procedures", "shop", CatalogError("unsupported"))
        warnings = WarningLog()

        schema = pipeline.extract_schema(shop_catalog, "shop", warnings)

        assert schema.procedures == ()
        assert len(schema.tables) == 2
        assert warnings.messages == ["Failed to extract procedures for schema shop: unsupported"]

    def test_hook_results_sorted(self, fake_catalog):
        dialect = Dialect("Test", procedures=lambda ctx, schema: [Procedure(name="b"), Procedure(name="a")])
        procedures = ExtractionPipeline(dialect).extract_procedures(fake_catalog, None, "s")
        assert [p.name for p in procedures] == ["a", "b"]

    def test_hook_failure_warns(self, fake_catalog):
        def broken(ctx, schema):
            raise RuntimeError("no routines view")

        warnings = WarningLog()
        procedures = ExtractionPipeline(Dialect("Test", procedures=broken)).extract_procedures(
            fake_catalog, None, "s", warnings
        )
        assert procedures == []
        assert warnings.messages == ["Failed to extract procedures: no routines view"]

    def test_hook_failure_falls_back_to_standard(self, fake_catalog):
        self._add_procedures(fake_catalog)

        def broken(ctx, schema):
            raise RuntimeError("no routines view")

        dialect = Dialect("Test", procedures=broken, procedures_fall_back=True)
        warnings = WarningLog()
        procedures = ExtractionPipeline(dialect).extract_procedures(fake_catalog, None, "s", warnings)

        assert [p.name for p in procedures] == ["add", "zap"]
        assert len(warnings) == 0


class TestSchemaTriggers:
    """Test schema-wide trigger extraction."""

    def test_no_hook_means_no_triggers(self, pipeline, fake_catalog):
        assert pipeline.extract_triggers(fake_catalog, None, "s") == []

    def test_hook_failure_warns(self, fake_catalog):
        def broken(ctx, schema):
            raise RuntimeError("denied")

        warnings = WarningLog()
        pipeline = ExtractionPipeline(Dialect("Test", schema_triggers=broken))
        assert pipeline.extract_triggers(fake_catalog, None, "s", warnings) == []
        assert warnings.messages == ["Failed to extract triggers for schema s: denied"]


class TestExplore:
    """Test whole-database exploration."""

    def test_product_info_copied(self, pipeline, shop_catalog):
        database = pipeline.explore(shop_catalog)
        assert database.product_name == "FooDB"
        assert database.product_version == "1.0"
        assert database.driver_name == "fake-driver"
        assert database.user_name == "tester"
        assert [s.name for s in database.schemas] == ["shop"]
        assert database.warnings == ()

    def test_permission_denied_schema_skipped(self, pipeline, shop_catalog):
        shop_catalog.add_schema("secret")
        shop_catalog.fail("get_tables", "secret", permission_denied())

        database = pipeline.explore(shop_catalog)

        assert [s.name for s in database.schemas] == ["shop"]
        assert database.warnings == ("Permission denied for schema: secret",)

    def test_native_access_denied_schema_skipped(self, pipeline, shop_catalog):
        shop_catalog.add_schema("secret")
        shop_catalog.fail("get_tables", "secret", access_denied(1044))

        database = pipeline.explore(shop_catalog)

        assert [s.name for s in database.schemas] == ["shop"]
        assert database.warnings == ("Permission denied for schema: secret",)

    def test_other_schema_errors_propagate(self, pipeline, shop_catalog):
        shop_catalog.fail("get_tables", "shop", CatalogError("server gone", sql_state="08006"))
        with pytest.raises(MetadataExtractionError):
            pipeline.explore(shop_catalog)

    def test_product_info_failure(self, pipeline, fake_catalog):
        fake_catalog.fail("product_info")
        with pytest.raises(MetadataExtractionError) as exc_info:
            pipeline.explore(fake_catalog)
        assert exc_info.value.operation == "explore"

    def test_runs_do_not_share_warnings(self, pipeline, shop_catalog):
        shop_catalog.fail("get_columns", "orders", CatalogError("boom"))
        first = pipeline.explore(shop_catalog)
        second = pipeline.explore(shop_catalog)
        assert first.warnings == ("Failed to extract table orders: boom",)
        assert second.warnings == first.warnings


class TestSupports:
    """Test product matching."""

    def test_dialect_predicate_gets_lower_case(self):
        pipeline = ExtractionPipeline(Dialect("Acme", supports=lambda name: name.startswith("acme")))
        assert pipeline.supports("ACME Server")
        assert not pipeline.supports("Other")

    def test_none_matches_only_fallback(self, pipeline):
        assert pipeline.supports(None)
        assert not ExtractionPipeline(Dialect("Acme")).supports(None)


class TestHookContext:
    """Test the helper handed to dialect hooks."""

    def test_query_value(self, fake_catalog):
        fake_catalog.on_query("SELECT owner", [{"owner": "dba", "other": 1}])
        ctx = HookContext(fake_catalog)
        assert ctx.query_value("SELECT owner FROM x") == "dba"
        assert ctx.query_value("SELECT owner FROM x", key="other") == 1
        assert ctx.query_value("SELECT nothing") is None

    def test_warn_without_log(self, fake_catalog, caplog):
        with caplog.at_level(logging.WARNING, logger="dbx_metadata"):
            HookContext(fake_catalog).warn("careful")
        assert "careful" in caplog.text
