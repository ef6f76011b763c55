"""DynamoDB access for the record collections.

This package centralizes:
- boto3 client/resource configuration (region, optional local endpoint)
- retry/backoff policy for throttling and transient failures
- typed errors mapped from botocore for problem responses
- the single-table wrapper used by ``socialhub.registry``

"""
