"""
File Record Repository for DynamoDB operations.
Handles CRUD operations for file records and delegates parsed rows.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import boto3
from botocore.exceptions import ClientError
from src.core import config
from src.core.exceptions import StoreWriteException
from src.models.file_record import FileRecord, ParseMeta
from src.repositories.record_store import RecordStore
from src.repositories.parsed_content_repository import ParsedContentRepository


class FileRecordRepository(RecordStore):
    """Repository for file record DynamoDB operations."""

    def __init__(self, content_repository: ParsedContentRepository = None):
        self.dynamodb = boto3.resource('dynamodb', region_name=config.settings.aws_region)
        self.table = self.dynamodb.Table(config.settings.file_records_table_name)
        self.content_repository = content_repository or ParsedContentRepository()

    def create(self, record: FileRecord) -> str:
        """
        Create new file record.

        Args:
            record: FileRecord domain model

        Returns:
            The record identifier

        Raises:
            StoreWriteException: If create operation fails
        """
        try:
            item = {
                'file_id': record.file_id,
                'filename': record.filename,
                'content_type': record.content_type,
                'path': record.path,
                'status': record.status.value,
                'progress': record.progress,
                'created_at': record.created_at.isoformat(),
                'updated_at': record.updated_at.isoformat()
            }

            if record.size is not None:
                item['size'] = record.size
            if record.parse_meta:
                item['parse_meta'] = record.parse_meta.to_dict()

            self.table.put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(file_id)'
            )
            return record.file_id

        except ClientError as e:
            raise StoreWriteException(f"Failed to create file record: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error creating file record: {str(e)}") from e

    def find_by_id(self, file_id: str) -> Optional[FileRecord]:
        """
        Retrieve file record by ID.

        Args:
            file_id: File record identifier

        Returns:
            FileRecord object or None if not found

        Raises:
            StoreWriteException: If query fails
        """
        try:
            response = self.table.get_item(Key={'file_id': file_id})

            if 'Item' not in response:
                return None

            return self._item_to_record(response['Item'])

        except ClientError as e:
            raise StoreWriteException(f"Failed to get file record: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error getting file record: {str(e)}") from e

    def update_fields(self, file_id: str, updates: Dict[str, Any]) -> None:
        """
        Update file record fields. The record must already exist, so a
        late update never recreates a deleted record.

        Args:
            file_id: File record identifier
            updates: Dictionary of fields to update

        Raises:
            StoreWriteException: If update operation fails
        """
        try:
            updates = dict(updates)
            updates['updated_at'] = datetime.utcnow().isoformat()

            update_expression = "SET "
            expression_values = {}
            expression_names = {}

            for key, value in updates.items():
                update_expression += f"#{key} = :{key}, "
                expression_values[f":{key}"] = self._to_attribute(value)
                expression_names[f"#{key}"] = key

            update_expression = update_expression.rstrip(", ")

            self.table.update_item(
                Key={'file_id': file_id},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_names,
                ExpressionAttributeValues=expression_values,
                ConditionExpression='attribute_exists(file_id)'
            )

        except ClientError as e:
            raise StoreWriteException(f"Failed to update file record: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error updating file record: {str(e)}") from e

    def delete_by_id(self, file_id: str) -> None:
        """
        Delete file record and its parsed rows.

        Raises:
            StoreWriteException: If delete operation fails
        """
        self.content_repository.delete_rows(file_id)
        try:
            self.table.delete_item(Key={'file_id': file_id})
        except ClientError as e:
            raise StoreWriteException(f"Failed to delete file record: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error deleting file record: {str(e)}") from e

    def list_all(self) -> List[FileRecord]:
        """
        Retrieve all file records, newest first.

        Raises:
            StoreWriteException: If scan fails
        """
        try:
            scan_kwargs = {}
            items = []
            while True:
                response = self.table.scan(**scan_kwargs)
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                scan_kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

            records = [self._item_to_record(item) for item in items]
            return sorted(records, key=lambda r: r.created_at, reverse=True)

        except ClientError as e:
            raise StoreWriteException(f"Failed to scan file records: {str(e)}") from e
        except Exception as e:
            raise StoreWriteException(f"Unexpected error scanning file records: {str(e)}") from e

    def save_content(self, file_id: str, rows: List[Dict[str, Any]]) -> None:
        self.content_repository.save_rows(file_id, rows)

    def find_content(self, file_id: str) -> List[Dict[str, Any]]:
        return self.content_repository.find_rows(file_id)

    def delete_content(self, file_id: str) -> None:
        self.content_repository.delete_rows(file_id)

    def _to_attribute(self, value: Any) -> Any:
        """Convert domain values into DynamoDB-serializable values."""
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, ParseMeta):
            return value.to_dict()
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def _item_to_record(self, item: dict) -> FileRecord:
        """Convert DynamoDB item to FileRecord domain model."""
        parse_meta = item.get('parse_meta')
        size = item.get('size')
        return FileRecord(
            file_id=item['file_id'],
            filename=item.get('filename', ''),
            content_type=item.get('content_type', ''),
            path=item.get('path', ''),
            status=item['status'],
            progress=int(item.get('progress', 0)),
            size=int(size) if size is not None else None,
            parse_meta=ParseMeta.from_dict(parse_meta) if parse_meta else None,
            created_at=datetime.fromisoformat(item['created_at']),
            updated_at=datetime.fromisoformat(item.get('updated_at', item['created_at']))
        )
