from abc import ABC, abstractmethod
from typing import List, Optional
import logging
import time

from schema_sync.core.context import RunContext
from schema_sync.core.database import DatabaseConnection, DatabaseService
from schema_sync.core.errors import (
    AppError, ErrorClassifier, get_troubleshooting_guidance, validation_error
)
from schema_sync.core.retry import RetryHandler
from schema_sync.core.shutdown import ShutdownHandler, install_signal_handlers, remove_signal_handlers
from schema_sync.models.base import DatabaseConfig, SyncConfig, SyncProgress
from schema_sync.models.migration import ExecutionResult, MigrationPlan, MigrationStatement
from schema_sync.models.schema import Schema, SchemaDiff
from schema_sync.services.comparison_engine import SchemaComparisonEngine
from schema_sync.services.extractor import SchemaExtractor
from schema_sync.services.generators.migration_planner import MigrationPlanner

logger = logging.getLogger(__name__)


class ProgressReporter(ABC):
    """Receives phase transitions of a synchronization run"""

    @abstractmethod
    def report(self, progress: SyncProgress) -> None:
        pass


class SchemaSyncExecutor:
    """
    Drives one synchronization run end to end.

    Connect -> extract -> compare -> (empty: done) -> plan -> validate ->
    (dry run: report | execute) -> done. Pipeline errors never escape
    execute(); they are classified and returned in ExecutionResult.error
    together with everything produced up to the failure.
    """

    def __init__(
        self,
        config: SyncConfig,
        db_service: DatabaseService,
        extractor: SchemaExtractor,
        retry_handler: Optional[RetryHandler] = None,
        reporter: Optional[ProgressReporter] = None,
        shutdown_handler: Optional[ShutdownHandler] = None,
    ):
        self.config = config
        self.db_service = db_service
        self.extractor = extractor
        self.retry_handler = retry_handler or RetryHandler(config.retry)
        self.reporter = reporter
        self.shutdown_handler = shutdown_handler or ShutdownHandler()
        self.comparison_engine = SchemaComparisonEngine(config.options)
        self.planner = MigrationPlanner()

    async def execute(self, ctx: Optional[RunContext] = None) -> ExecutionResult:
        """Run the pipeline and return its result"""
        ctx = ctx or RunContext(self.config.timeout)
        start_time = time.time()
        result = ExecutionResult(dry_run=self.config.dry_run)

        try:
            self.validate_config()
            await self._run(ctx, result)
            result.success = True
            self._report("complete", message="Synchronization completed")
        except Exception as e:
            result.error = self.handle_error(e)
            result.success = False
            self._report("error", message=result.error.get_user_message())
        finally:
            await self.shutdown_handler.shutdown()
            result.duration_seconds = time.time() - start_time

        logger.info(
            f"Synchronization finished: success={result.success}, "
            f"executed={len(result.executed_statements)}, duration={result.duration_seconds:.2f}s"
        )
        return result

    async def execute_with_signal_handling(self) -> ExecutionResult:
        """Run with SIGINT/SIGTERM mapped to cancellation of the run"""
        ctx = RunContext(self.config.timeout)
        install_signal_handlers(ctx)
        try:
            return await self.execute(ctx)
        finally:
            remove_signal_handlers()

    async def _run(self, ctx: RunContext, result: ExecutionResult) -> None:
        # Connect
        self._report("connecting", 0, 2, "Connecting to source database")
        source_conn = await self._connect(self.config.source, "source", ctx)
        self._report("connecting", 1, 2, "Connecting to target database")
        target_conn = await self._connect(self.config.target, "target", ctx)

        # Extract
        self._report("extracting", 0, 2, f"Extracting schema {self.config.source.database}")
        source_schema = await self._extract(source_conn, self.config.source, "source", ctx)
        self._report("extracting", 1, 2, f"Extracting schema {self.config.target.database}")
        target_schema = await self._extract(target_conn, self.config.target, "target", ctx)

        # Compare
        self._report("comparing", message="Comparing schemas")
        diff = self.comparison_engine.compare(source_schema, target_schema)
        result.schema_diff = diff

        if self.comparison_engine.is_schema_diff_empty(diff):
            logger.info("Schemas are identical - no changes detected")
            return

        for warning in self.comparison_engine.detect_complex_modifications(diff):
            result.add_warning(warning)

        # Plan and validate
        self._report("planning", message="Planning migration")
        plan = self.planner.plan(diff)
        result.migration_plan = plan
        for warning in plan.warnings:
            result.add_warning(warning)

        # Only primary key changes, which are left for manual review
        if plan.is_empty():
            logger.warning("Schema differences found but no statements were planned")
            return

        self.planner.validate(plan)

        if self.config.dry_run:
            logger.info(f"Dry run, no changes applied\n{plan.format_summary()}")
            return

        await self._execute_plan(plan, target_conn, ctx, result)

    async def _connect(self, db_config: DatabaseConfig, role: str, ctx: RunContext) -> DatabaseConnection:
        conn = await self.retry_handler.execute_with_retry(
            lambda: self.db_service.connect(db_config),
            f"connect to {role} database",
            ctx,
        )
        self.shutdown_handler.register(lambda: self.db_service.close(conn))
        logger.info(f"Connected to {role} database {db_config.describe()}")
        return conn

    async def _extract(
        self,
        conn: DatabaseConnection,
        db_config: DatabaseConfig,
        role: str,
        ctx: RunContext
    ) -> Schema:
        schema = await self.retry_handler.execute_with_retry(
            lambda: self.extractor.extract_schema(conn, db_config.database),
            f"extract {role} schema",
            ctx,
        )
        logger.info(f"Extracted {role} schema '{schema.name}' with {len(schema.tables)} tables")
        return schema

    async def _execute_plan(
        self,
        plan: MigrationPlan,
        target_conn: DatabaseConnection,
        ctx: RunContext,
        result: ExecutionResult
    ) -> None:
        statements = plan.statements
        total = len(statements)

        if self.config.transactional:
            self._report("executing", 0, total, f"Executing {total} statements in one transaction")
            try:
                await self.retry_handler.execute_with_retry(
                    lambda: self._execute_batch(statements, target_conn),
                    "execute migration",
                    ctx,
                )
            except AppError as e:
                index = e.context.get("statement_index")
                if index:
                    # MySQL commits each DDL statement implicitly
                    result.executed_statements.extend(statements[:index - 1])
                    e.with_context("statement", statements[index - 1].sql)
                    logger.error(f"Failed to execute migration statement {index}: {statements[index - 1].sql}")
                else:
                    e.with_context("statement_count", total)
                raise
            result.executed_statements.extend(statements)
            return

        for index, statement in enumerate(statements, start=1):
            self._report("executing", index, total, f"Executing statement {index}/{total}: {statement.description}")
            try:
                await self._execute_statement(statement, index, total, target_conn, ctx)
            except AppError as e:
                logger.error(f"Failed to execute migration statement {index}: {statement.sql}")
                raise e.with_context("statement_index", index).with_context("statement", statement.sql)
            result.executed_statements.append(statement)

    async def _execute_batch(self, statements: List[MigrationStatement], target_conn: DatabaseConnection) -> None:
        """
        Send the whole plan in one execute_sql call.

        Only a failure on the first statement stays recoverable. Any later
        failure leaves committed DDL behind, so the batch must not be resent.
        """
        try:
            await self.db_service.execute_sql(target_conn, [stmt.sql for stmt in statements])
        except Exception as e:
            error = ErrorClassifier.classify(e)
            if error.context.get("statement_index") != 1:
                error.recoverable = False
            raise error

    async def _execute_statement(
        self,
        statement: MigrationStatement,
        index: int,
        total: int,
        target_conn: DatabaseConnection,
        ctx: RunContext
    ) -> None:
        logger.debug(f"Executing statement {index}/{total}: {statement.sql}")
        await self.retry_handler.execute_with_retry(
            lambda: self.db_service.execute_sql(target_conn, [statement.sql]),
            f"execute migration statement {index}",
            ctx,
        )

    def validate_config(self) -> None:
        """Check the connection settings needed by the run"""
        for role, db_config in (("source", self.config.source), ("target", self.config.target)):
            if not db_config.host:
                raise validation_error(f"{role} host is required")
            if not db_config.database:
                raise validation_error(f"{role} database name is required")

    def handle_error(self, error: BaseException) -> AppError:
        """Classify and log an error from the pipeline"""
        app_error = ErrorClassifier.classify(error)
        logger.error(f"Synchronization failed: {app_error}")
        if app_error.context:
            logger.error(f"Error context: {app_error.context}")
        for hint in get_troubleshooting_guidance(app_error.error_type):
            logger.debug(f"Hint: {hint}")
        return app_error

    def _report(self, phase: str, current: int = 0, total: int = 0, message: Optional[str] = None) -> None:
        logger.info(f"[{phase}] {message or ''}".rstrip())
        if self.reporter is not None:
            self.reporter.report(SyncProgress(phase=phase, current=current, total=total, message=message))

    # Convenience accessors for callers that only need the diff or plan

    def compare_schemas(self, source: Schema, target: Schema) -> SchemaDiff:
        return self.comparison_engine.compare(source, target)

    def plan_migration(self, diff: SchemaDiff) -> MigrationPlan:
        plan = self.planner.plan(diff)
        self.planner.validate(plan)
        return plan

    def get_sql_statements(self, plan: MigrationPlan) -> List[str]:
        return [stmt.sql for stmt in plan.statements]
