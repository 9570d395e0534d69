"""
Parsed Content Repository for DynamoDB operations.
Stores parsed rows as one item per row, keyed by file and row index.
"""
import json
from typing import Any, Dict, List
import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from src.core import config
from src.core.exceptions import StoreWriteException


class ParsedContentRepository:
    """Repository for parsed row DynamoDB operations."""

    def __init__(self):
        self.dynamodb = boto3.resource('dynamodb', region_name=config.settings.aws_region)
        self.table = self.dynamodb.Table(config.settings.parsed_content_table_name)

    def save_rows(self, file_id: str, rows: List[Dict[str, Any]]) -> None:
        """
        Save parsed rows in batches.
        DynamoDB batch_writer automatically handles batching (25 items per batch).

        Rows are stored as JSON text so that floats and nulls survive
        without Decimal conversion.

        Args:
            file_id: File record identifier
            rows: Parsed rows in source order

        Raises:
            StoreWriteException: If batch save fails
        """
        try:
            with self.table.batch_writer() as batch:
                for index, row in enumerate(rows):
                    batch.put_item(Item={
                        'file_id': file_id,
                        'row_index': index,
                        'data': json.dumps(row, default=str)
                    })
        except ClientError as e:
            raise StoreWriteException(f"Failed to save parsed rows: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error saving parsed rows: {str(e)}") from e

    def find_rows(self, file_id: str) -> List[Dict[str, Any]]:
        """
        Retrieve all parsed rows for a file, ordered by row index.

        Raises:
            StoreWriteException: If query fails
        """
        try:
            return [json.loads(item['data']) for item in self._query_all(file_id)]
        except ClientError as e:
            raise StoreWriteException(f"Failed to query parsed rows: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error querying parsed rows: {str(e)}") from e

    def delete_rows(self, file_id: str) -> None:
        """
        Delete all parsed rows for a file.

        Raises:
            StoreWriteException: If delete fails
        """
        try:
            items = self._query_all(file_id, projection='file_id, row_index')
            with self.table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={'file_id': item['file_id'], 'row_index': item['row_index']})
        except ClientError as e:
            raise StoreWriteException(f"Failed to delete parsed rows: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error deleting parsed rows: {str(e)}") from e

    def _query_all(self, file_id: str, projection: str = None) -> List[dict]:
        """Query every page of rows for a file."""
        query_kwargs = {
            'KeyConditionExpression': Key('file_id').eq(file_id),
            'ScanIndexForward': True
        }
        if projection:
            query_kwargs['ProjectionExpression'] = projection

        items = []
        while True:
            response = self.table.query(**query_kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            query_kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
