"""Getting started with Amazon Athena.

Creates a results bucket, a database and a table over the public CloudFront
sample logs, runs a query and saves it as a named query.
"""

import logging
from typing import Final

from tutorial_runner.constants import QUERY_POLL_INTERVAL
from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import query, require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

TABLE_NAME: Final = "cloudfront_logs"

CREATE_TABLE_TEMPLATE: Final = r"""CREATE EXTERNAL TABLE IF NOT EXISTS {database}.{table} (
  `Date` DATE,
  Time STRING,
  Location STRING,
  Bytes INT,
  RequestIP STRING,
  Method STRING,
  Host STRING,
  Uri STRING,
  Status INT,
  Referrer STRING,
  os STRING,
  Browser STRING,
  BrowserVersion STRING
)
ROW FORMAT SERDE 'org.apache.hadoop.hive.serde2.RegexSerDe'
WITH SERDEPROPERTIES (
  "input.regex" = "^(?!#)([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+([^ ]+)\\s+[^\\(]+[\\(]([^\\;]+).*\\%20([^\\/]+)[\\/](.*)$"
) LOCATION 's3://athena-examples-{region}/cloudfront/plaintext/'"""  # noqa: E501

OS_COUNT_QUERY: Final = """SELECT os, COUNT(*) count
FROM {database}.{table}
WHERE date BETWEEN date '2014-07-05' AND date '2014-08-05'
GROUP BY os"""


class AthenaTutorial(BaseTutorial):
    """Athena database, table and query walkthrough."""

    slug = "athena-gs"
    title = "Getting started with Amazon Athena"
    description = (
        "Create an S3 bucket for query results, an Athena database and a table "
        "over sample CloudFront logs, run a query against it and save the query "
        "as a named query."
    )
    options_model = TutorialOptions

    async def run(self, session: TutorialSession, options: TutorialOptions) -> None:
        region = session.region or "us-east-1"
        bucket_name = session.name("athena-results", max_length=63)
        database = session.name("athena_db", separator="_")
        output_location = f"s3://{bucket_name}/output/"

        bucket_params: dict[str, object] = {"Bucket": bucket_name}
        if region != "us-east-1":
            bucket_params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        await session.call(
            "s3",
            "create_bucket",
            description=f"Creating S3 bucket for query results: {bucket_name}",
            **bucket_params,
        )
        session.track("s3:bucket", bucket_name)

        await self._run_query(
            session,
            f"CREATE DATABASE IF NOT EXISTS {database}",
            output_location,
            description=f"Step 1: Creating database {database}",
        )
        session.track("athena:database", database, attributes={"output_location": output_location})

        await self._run_query(
            session,
            CREATE_TABLE_TEMPLATE.format(database=database, table=TABLE_NAME, region=region),
            output_location,
            description=f"Step 2: Creating table {TABLE_NAME}",
        )
        session.track(
            "athena:table",
            TABLE_NAME,
            label=f"{database}.{TABLE_NAME}",
            attributes={"database": database, "output_location": output_location},
        )

        tables = await session.call(
            "athena", "list_table_metadata", CatalogName="AwsDataCatalog", DatabaseName=database
        )
        logger.info(f"Tables: {', '.join(query(tables, 'TableMetadataList[].Name') or [])}")

        sql = OS_COUNT_QUERY.format(database=database, table=TABLE_NAME)
        query_id = await self._run_query(
            session, sql, output_location, description="Step 3: Querying the table"
        )
        results = await session.call("athena", "get_query_results", QueryExecutionId=query_id)
        rows = query(results, "ResultSet.Rows[1:].Data[].VarCharValue") or []
        for os_name, count in zip(rows[::2], rows[1::2], strict=False):
            logger.info(f"  {os_name}: {count}")

        await session.create(
            "athena",
            "create_named_query",
            resource_type="athena:named-query",
            id_query="NamedQueryId",
            label="OS Count Query",
            description="Step 4: Saving the query as a named query",
            params={
                "Name": "OS Count Query",
                "Description": "Count of operating systems in CloudFront logs",
                "Database": database,
                "QueryString": sql,
            },
        )
        session.output("database", database)
        session.output("results_location", output_location)

    async def _run_query(
        self,
        session: TutorialSession,
        sql: str,
        output_location: str,
        description: str | None = None,
    ) -> str:
        response = await session.call(
            "athena",
            "start_query_execution",
            description=description,
            QueryString=sql,
            ResultConfiguration={"OutputLocation": output_location},
        )
        query_id = require(response, "QueryExecutionId", "query execution ID")
        await session.wait_for(
            "athena",
            "get_query_execution",
            params={"QueryExecutionId": query_id},
            status_query="QueryExecution.Status.State",
            targets="SUCCEEDED",
            failure_states=("FAILED", "CANCELLED"),
            interval=QUERY_POLL_INTERVAL,
            description="query",
        )
        return query_id
