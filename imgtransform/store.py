import dataclasses

from botocore.exceptions import ClientError
from mypy_boto3_s3.client import S3Client

from imgtransform.typing import S3Key

DEFAULT_CONTENT_TYPE = 'image/jpeg'


class ObjectNotFound(Exception):
  pass


@dataclasses.dataclass(frozen=True)
class SourceObject:
  body: bytes
  content_type: str


def is_not_found_client_error(exception: ClientError) -> bool:
  if 'Error' not in exception.response:
    return False
  if 'Code' not in exception.response['Error']:
    return False
  return exception.response['Error']['Code'] in ['404', 'NoSuchKey']


class ObjectStore:
  """Two-bucket layout: source images and transformed images.

  Transformed objects are keyed ``<source key>/<descriptor>``, i.e. the
  canonical path without its leading slash, so the CDN can serve them
  straight from the transformed bucket.
  """

  def __init__(self, s3: S3Client, original_bucket: str, transformed_bucket: str):
    self.s3 = s3
    self.original_bucket = original_bucket
    self.transformed_bucket = transformed_bucket

  @property
  def has_transformed_bucket(self) -> bool:
    return self.transformed_bucket != ''

  def get_original(self, key: S3Key) -> SourceObject:
    try:
      res = self.s3.get_object(Bucket=self.original_bucket, Key=key)
    except ClientError as e:
      if is_not_found_client_error(e):
        raise ObjectNotFound(key) from e
      raise e

    return SourceObject(
        body=res['Body'].read(),
        content_type=res.get('ContentType') or DEFAULT_CONTENT_TYPE)

  def put_transformed(self, key: S3Key, body: bytes, content_type: str, cache_control: str) -> None:
    self.s3.put_object(
        Bucket=self.transformed_bucket,
        Key=key,
        Body=body,
        ContentType=content_type,
        CacheControl=cache_control)
