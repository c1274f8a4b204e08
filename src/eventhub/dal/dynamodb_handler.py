"""
Data Access Layer (DAL) for DynamoDB operations.

Thin wrapper around the single DynamoDB table shared by every entity. All
calls go through ``_handle_dynamodb_errors`` so repositories only ever see
``DALError`` subclasses, with consistent logs, metrics and tracer annotations.
"""

import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import boto3
from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from eventhub.handlers.utils.observability import logger, metrics, tracer

# DynamoDB limit for TransactWriteItems
MAX_TRANSACTION_ITEMS = 100


class DALError(Exception):
    """Base exception for Data Access Layer errors."""

    def __init__(
        self,
        message: str,
        operation: str,
        table_name: str,
        code: str = 'DAL_ERROR',
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.table_name = table_name
        self.code = code
        self.retry_after = retry_after


class ConditionalCheckFailedError(DALError):
    """Raised when a conditional check fails in DynamoDB."""

    def __init__(self, table_name: str, operation: str, condition: str = 'Item condition check failed'):
        super().__init__(
            message=f'Conditional check failed: {condition}',
            operation=operation,
            table_name=table_name,
            code='CONDITIONAL_CHECK_FAILED',
        )
        self.condition = condition


class TransactionConflictError(DALError):
    """Raised when DynamoDB cancels a transaction."""

    def __init__(self, table_name: str, reasons: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            message='Transaction cancelled',
            operation='TransactWriteItems',
            table_name=table_name,
            code='TRANSACTION_CANCELLED',
        )
        # One entry per transaction item, in request order
        self.reasons = reasons or []

    @property
    def failed_conditions(self) -> List[int]:
        """Indexes of the transaction items whose condition failed."""
        return [
            index for index, reason in enumerate(self.reasons)
            if reason.get('Code') == 'ConditionalCheckFailed'
        ]


class DynamoDBHandler:
    """DynamoDB table handler with error mapping and observability."""

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """
        Initialize DynamoDB handler.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region name
            endpoint_url: DynamoDB endpoint URL (for local testing)
        """
        self.table_name = table_name

        session_config = {}
        if region_name:
            session_config['region_name'] = region_name
        if endpoint_url:
            session_config['endpoint_url'] = endpoint_url

        self.dynamodb = boto3.resource('dynamodb', **session_config)
        self.table = self.dynamodb.Table(table_name)

        logger.debug('DynamoDB handler initialized', extra={
            'table_name': table_name,
            'region_name': region_name,
            'endpoint_url': endpoint_url,
        })

    def _handle_dynamodb_errors(self, operation: str):
        """Decorator to handle DynamoDB errors consistently."""

        def decorator(func):
            def wrapper(*args, **kwargs):
                operation_start = time.time()

                try:
                    result = func(*args, **kwargs)

                    operation_duration = (time.time() - operation_start) * 1000
                    metrics.add_metric(name=f'DynamoDB{operation}Duration', unit=MetricUnit.Milliseconds, value=operation_duration)
                    tracer.put_annotation('dynamodb_operation', operation)

                    return result

                except ClientError as e:
                    error_code = e.response['Error']['Code']
                    error_message = e.response['Error'].get('Message', '')

                    metrics.add_metric(name=f'DynamoDB{operation}Error', unit=MetricUnit.Count, value=1)

                    if error_code == 'ConditionalCheckFailedException':
                        # Expected outcome of guarded writes, callers decide what it means
                        logger.info(f'DynamoDB {operation} condition failed', extra={
                            'table_name': self.table_name,
                            'operation': operation,
                        })
                        raise ConditionalCheckFailedError(table_name=self.table_name, operation=operation)

                    if error_code == 'TransactionCanceledException':
                        reasons = e.response.get('CancellationReasons', [])
                        logger.info('DynamoDB transaction cancelled', extra={
                            'table_name': self.table_name,
                            'cancellation_reasons': [reason.get('Code') for reason in reasons],
                        })
                        raise TransactionConflictError(table_name=self.table_name, reasons=reasons)

                    logger.error(f'DynamoDB {operation} error', extra={
                        'error_code': error_code,
                        'error_message': error_message,
                        'table_name': self.table_name,
                        'operation': operation,
                    })

                    if error_code == 'ResourceNotFoundException':
                        raise DALError(
                            message=f'Table {self.table_name} not found',
                            operation=operation,
                            table_name=self.table_name,
                            code='TABLE_NOT_FOUND',
                        )
                    elif error_code in ('ProvisionedThroughputExceededException', 'ThrottlingException'):
                        raise DALError(
                            message='DynamoDB throttling detected',
                            operation=operation,
                            table_name=self.table_name,
                            code='THROTTLING_ERROR',
                            retry_after=30,
                        )
                    else:
                        raise DALError(
                            message=f'DynamoDB error: {error_message}',
                            operation=operation,
                            table_name=self.table_name,
                            code=f'DYNAMODB_{error_code}',
                        )

                except BotoCoreError as e:
                    metrics.add_metric(name=f'DynamoDB{operation}Error', unit=MetricUnit.Count, value=1)
                    logger.error(f'DynamoDB connection error during {operation}', extra={
                        'error': str(e),
                        'table_name': self.table_name,
                    })
                    raise DALError(
                        message=f'Database connection error: {str(e)}',
                        operation=operation,
                        table_name=self.table_name,
                        code='DATABASE_CONNECTION_ERROR',
                    )

            return wrapper
        return decorator

    @tracer.capture_method
    def get_item(
        self,
        key: Dict[str, Any],
        consistent_read: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Get a single item from DynamoDB.

        Args:
            key: Primary key of the item to retrieve
            consistent_read: Whether to use strongly consistent read

        Returns:
            Item data or None if not found

        Raises:
            DALError: If DynamoDB operation fails
        """

        @self._handle_dynamodb_errors('GetItem')
        def _get_item():
            response = self.table.get_item(Key=key, ConsistentRead=consistent_read)
            return response.get('Item')

        return _get_item()

    @tracer.capture_method
    def put_item(
        self,
        item: Dict[str, Any],
        condition_expression: Optional[Any] = None,
    ) -> Dict[str, Any]:
        """
        Put an item into DynamoDB, stamping ``createdAt`` and ``updatedAt``.

        Args:
            item: Item data to store
            condition_expression: Conditional expression for the put operation

        Returns:
            The stored item data

        Raises:
            DALError: If DynamoDB operation fails
            ConditionalCheckFailedError: If condition check fails
        """

        @self._handle_dynamodb_errors('PutItem')
        def _put_item():
            stored = dict(item)
            now = datetime.now(timezone.utc).isoformat()
            stored.setdefault('createdAt', now)
            stored['updatedAt'] = now

            put_item_kwargs = {'Item': stored}
            if condition_expression is not None:
                put_item_kwargs['ConditionExpression'] = condition_expression

            self.table.put_item(**put_item_kwargs)

            logger.debug('Item stored successfully', extra={
                'table_name': self.table_name,
                'pk': stored.get('pk'),
                'item_size': len(json.dumps(stored, default=str)),
            })

            return stored

        return _put_item()

    @tracer.capture_method
    def update_item(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[Any] = None,
        return_values: str = 'ALL_NEW',
    ) -> Optional[Dict[str, Any]]:
        """
        Update an item in DynamoDB, always refreshing ``updatedAt``.

        Args:
            key: Primary key of the item to update
            update_expression: Update expression
            expression_attribute_values: Expression attribute values
            expression_attribute_names: Expression attribute names
            condition_expression: Conditional expression for the update
            return_values: What values to return after update

        Returns:
            Updated item data or None

        Raises:
            DALError: If DynamoDB operation fails
            ConditionalCheckFailedError: If condition check fails
        """

        @self._handle_dynamodb_errors('UpdateItem')
        def _update_item():
            values = dict(expression_attribute_values or {})
            names = dict(expression_attribute_names or {})
            values[':updatedAt'] = datetime.now(timezone.utc).isoformat()
            names['#updatedAt'] = 'updatedAt'

            expression = update_expression.strip()
            if expression.startswith('SET '):
                expression = f'SET #updatedAt = :updatedAt, {expression[4:]}'
            else:
                expression = f'SET #updatedAt = :updatedAt {expression}'

            update_kwargs = {
                'Key': key,
                'UpdateExpression': expression,
                'ExpressionAttributeValues': values,
                'ExpressionAttributeNames': names,
                'ReturnValues': return_values,
            }
            if condition_expression is not None:
                update_kwargs['ConditionExpression'] = condition_expression

            response = self.table.update_item(**update_kwargs)

            logger.debug('Item updated successfully', extra={
                'table_name': self.table_name,
                'key': key,
            })

            return response.get('Attributes')

        return _update_item()

    @tracer.capture_method
    def delete_item(
        self,
        key: Dict[str, Any],
        condition_expression: Optional[Any] = None,
    ) -> bool:
        """
        Delete an item from DynamoDB.

        Returns:
            True if item was deleted, False if not found
        """

        @self._handle_dynamodb_errors('DeleteItem')
        def _delete_item():
            delete_kwargs = {
                'Key': key,
                'ReturnValues': 'ALL_OLD',
            }
            if condition_expression is not None:
                delete_kwargs['ConditionExpression'] = condition_expression

            response = self.table.delete_item(**delete_kwargs)
            if response.get('Attributes'):
                logger.debug('Item deleted successfully', extra={
                    'table_name': self.table_name,
                    'key': key,
                })
                return True

            logger.warning('Item not found for deletion', extra={
                'table_name': self.table_name,
                'key': key,
            })
            return False

        return _delete_item()

    @tracer.capture_method
    def query_items(
        self,
        key_condition: Any,
        filter_expression: Optional[Any] = None,
        limit: Optional[int] = None,
        scan_index_forward: bool = True,
        exclusive_start_key: Optional[Dict[str, Any]] = None,
        index_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Query items from the table or one of its indexes.

        Args:
            key_condition: Key condition expression
            filter_expression: Filter expression
            limit: Maximum number of items to evaluate
            scan_index_forward: Sort order (True for ascending)
            exclusive_start_key: Key to resume after
            index_name: Global secondary index name

        Returns:
            Dictionary with 'items' and optional 'last_evaluated_key'

        Raises:
            DALError: If DynamoDB operation fails
        """

        @self._handle_dynamodb_errors('Query')
        def _query_items():
            query_kwargs = {
                'KeyConditionExpression': key_condition,
                'ScanIndexForward': scan_index_forward,
            }

            if filter_expression is not None:
                query_kwargs['FilterExpression'] = filter_expression

            if limit:
                query_kwargs['Limit'] = limit

            if exclusive_start_key:
                query_kwargs['ExclusiveStartKey'] = exclusive_start_key

            if index_name:
                query_kwargs['IndexName'] = index_name

            response = self.table.query(**query_kwargs)

            result = {
                'items': response.get('Items', []),
                'count': response.get('Count', 0),
                'scanned_count': response.get('ScannedCount', 0),
            }

            if 'LastEvaluatedKey' in response:
                result['last_evaluated_key'] = response['LastEvaluatedKey']

            logger.debug('Query completed successfully', extra={
                'table_name': self.table_name,
                'index_name': index_name,
                'items_count': result['count'],
                'scanned_count': result['scanned_count'],
                'has_more_results': 'last_evaluated_key' in result,
            })

            return result

        return _query_items()

    def query_all(self, key_condition: Any, **kwargs) -> List[Dict[str, Any]]:
        """Run a query to exhaustion and return every matching item."""
        items: List[Dict[str, Any]] = []
        exclusive_start_key = None

        while True:
            page = self.query_items(key_condition, exclusive_start_key=exclusive_start_key, **kwargs)
            items.extend(page['items'])
            exclusive_start_key = page.get('last_evaluated_key')
            if not exclusive_start_key:
                return items

    @tracer.capture_method
    def batch_get_items(self, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Batch get multiple items from DynamoDB.

        Keys are de-duplicated and requested in chunks of 100, retrying any
        unprocessed keys DynamoDB hands back.

        Returns:
            List of retrieved items, in no particular order
        """

        @self._handle_dynamodb_errors('BatchGetItem')
        def _batch_get_items():
            unique_keys = list({json.dumps(key, sort_keys=True, default=str): key for key in keys}.values())
            items: List[Dict[str, Any]] = []

            for start in range(0, len(unique_keys), 100):
                request_items = {self.table_name: {'Keys': unique_keys[start:start + 100]}}
                while request_items:
                    response = self.dynamodb.batch_get_item(RequestItems=request_items)
                    items.extend(response.get('Responses', {}).get(self.table_name, []))
                    request_items = response.get('UnprocessedKeys') or None

            logger.debug('Batch get completed successfully', extra={
                'table_name': self.table_name,
                'requested_keys': len(unique_keys),
                'retrieved_items': len(items),
            })

            return items

        return _batch_get_items()

    @tracer.capture_method
    def transact_write(self, transact_items: List[Dict[str, Any]]) -> None:
        """
        Write several items atomically.

        Each entry is a ``TransactWriteItems`` element (``Put``, ``Update``,
        ``Delete`` or ``ConditionCheck``) with plain Python values. The table
        name is filled in when omitted.

        Raises:
            DALError: If the request is invalid or DynamoDB fails
            TransactionConflictError: If any condition fails or the items conflict
        """
        if not transact_items:
            return
        if len(transact_items) > MAX_TRANSACTION_ITEMS:
            raise DALError(
                message=f'Transaction exceeds {MAX_TRANSACTION_ITEMS} items',
                operation='TransactWriteItems',
                table_name=self.table_name,
                code='TRANSACTION_TOO_LARGE',
            )

        @self._handle_dynamodb_errors('TransactWriteItems')
        def _transact_write():
            request = []
            for entry in transact_items:
                (action, params), = entry.items()
                request.append({action: {'TableName': self.table_name, **params}})

            self.table.meta.client.transact_write_items(TransactItems=request)

            logger.debug('Transaction committed', extra={
                'table_name': self.table_name,
                'items': len(request),
            })

        _transact_write()
