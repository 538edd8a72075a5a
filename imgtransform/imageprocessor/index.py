import base64
import dataclasses
import json
import logging
import time
from http import HTTPStatus
from typing import Any, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from imgtransform.codec import NO_ORIENTATION, Codec, VipsCodec
from imgtransform.config import Config
from imgtransform.logs import init_logging
from imgtransform.operations import (
    Operations,
    key_from_path,
    split_canonical_path
)
from imgtransform.store import ObjectNotFound, ObjectStore, SourceObject
from imgtransform.typing import (
    FunctionUrlEvent,
    FunctionUrlResult,
    HttpPath,
    S3Key
)

NO_STORE = 'private,no-store'
JSON_MIME = 'application/json'

logger = init_logging(__name__)


class ImageProcessingError(Exception):
  """A failure reported to the caller as ``{"error": message}``."""
  status = HTTPStatus.INTERNAL_SERVER_ERROR

  def __init__(self, message: str):
    super().__init__(message)
    self.message = message


class InvalidMethod(ImageProcessingError):
  status = HTTPStatus.BAD_REQUEST


class FetchFailed(ImageProcessingError):
  status = HTTPStatus.INTERNAL_SERVER_ERROR


class TransformFailed(ImageProcessingError):
  status = HTTPStatus.INTERNAL_SERVER_ERROR


class ImageTooBig(ImageProcessingError):
  status = HTTPStatus.FORBIDDEN


def ns_to_ms(ns: int) -> int:
  return (ns + 500_000) // 1_000_000


@dataclasses.dataclass
class TimingMetrics:
  download_ns: int = 0
  transform_ns: int = 0
  upload_ns: Optional[int] = None

  def server_timing(self) -> str:
    timings = [
        f'img-download;dur={ns_to_ms(self.download_ns)}',
        f'img-transform;dur={ns_to_ms(self.transform_ns)}',
    ]

    if self.upload_ns is not None:
      timings.append(f'img-upload;dur={ns_to_ms(self.upload_ns)}')

    return ','.join(timings)


@dataclasses.dataclass(frozen=True)
class InstantResponse:
  status: int
  cache_control: str
  server_timing: str
  b64_body: Optional[str] = None
  content_type: Optional[str] = None
  location: Optional[str] = None
  img_size: Optional[int] = None


def json_dump(obj: Any) -> str:
  return json.dumps(obj, separators=(',', ':'), sort_keys=True)


class ImageProcessor:
  instances: dict[Config, 'ImageProcessor'] = {}

  def __init__(
      self,
      log: logging.Logger,
      store: ObjectStore,
      codec: Codec,
      cache_control: str,
      max_image_size: int,
  ):
    self.log = log
    self.store = store
    self.codec = codec
    self.cache_control = cache_control
    self.max_image_size = max_image_size
    self.log_context = {'method': '', 'path': ''}

  @classmethod
  def from_config(cls, log: logging.Logger, config: Config) -> 'ImageProcessor':
    if config not in cls.instances:
      s3 = boto3.client('s3', region_name=config.region)
      cls.instances[config] = cls(
          log=log,
          store=ObjectStore(s3, config.original_bucket, config.transformed_bucket),
          codec=VipsCodec(),
          cache_control=config.cache_control,
          max_image_size=config.max_image_size)

    return cls.instances[config]

  @classmethod
  def from_environ(cls, log: logging.Logger, environ: Mapping[str, str]) -> Optional['ImageProcessor']:
    try:
      config = Config.from_environ(environ)
    except KeyError as e:
      log.warning({
          'message': 'environment variable not found',
          'key': str(e),
      })
      return None
    except ValueError as e:
      log.warning({
          'message': 'invalid environment variable',
          'reason': str(e),
      })
      return None

    return cls.from_config(log, config)

  def log_warning(self, message: str, dict: dict[str, Any]) -> None:
    self.log.warning({
        'message': message,
        **self.log_context,
        **dict,
    })

  def log_debug(self, message: str, dict: dict[str, Any]) -> None:
    self.log.debug({
        'message': message,
        **self.log_context,
        **dict,
    })

  def log_error(self, message: str, dict: dict[str, Any]) -> None:
    self.log.error({
        'message': message,
        **self.log_context,
        **dict,
    })

  def set_log_context(self, method: str, path: HttpPath) -> None:
    self.log_context = {'method': method, 'path': str(path)}

  def fetch(self, key: S3Key, metrics: TimingMetrics) -> SourceObject:
    start_ns = time.time_ns()
    try:
      source = self.store.get_original(key)
    except (ObjectNotFound, ClientError, BotoCoreError) as e:
      raise FetchFailed('Error downloading original image') from e
    metrics.download_ns = time.time_ns() - start_ns
    return source

  def transform(self, source: SourceObject, ops: Operations, metrics: TimingMetrics) -> bytes:
    # Quality only makes sense for lossy targets.
    quality = ops.quality if ops.format is not None and ops.format.lossy else None

    start_ns = time.time_ns()
    try:
      image = self.codec.decode(source.body)
      orientation = self.codec.orientation(image)

      if ops.width is not None or ops.height is not None:
        image = self.codec.resize(image, ops.width, ops.height)

      # Must follow resize.
      if orientation != NO_ORIENTATION:
        image = self.codec.rotate(image)

      body = self.codec.encode(image, ops.format, quality)
    except Exception as e:
      raise TransformFailed('Error transforming image') from e
    metrics.transform_ns = time.time_ns() - start_ns
    return body

  def persist(self, key: S3Key, body: bytes, content_type: str, metrics: TimingMetrics) -> bool:
    start_ns = time.time_ns()
    try:
      self.store.put_transformed(key, body, content_type, self.cache_control)
    except (ClientError, BotoCoreError) as e:
      self.log_warning('could not upload transformed image', {'reason': str(e), 'key': key})
      return False
    metrics.upload_ns = time.time_ns() - start_ns
    return True

  def process(self, method: str, path: HttpPath) -> InstantResponse:
    if method != 'GET':
      raise InvalidMethod('Only GET method is supported')

    source_path, descriptor = split_canonical_path(path)
    ops = Operations.from_descriptor(descriptor)
    key = key_from_path(source_path)
    metrics = TimingMetrics()

    source = self.fetch(key, metrics)
    body = self.transform(source, ops, metrics)
    content_type = ops.content_type(source.content_type)
    too_big = self.max_image_size < len(body)

    persisted = False
    if self.store.has_transformed_bucket:
      persisted = self.persist(S3Key(f'{key}/{ops.to_descriptor()}'), body, content_type, metrics)

    if too_big:
      if not persisted:
        raise ImageTooBig('Requested transformed image is too big')

      return InstantResponse(
          status=HTTPStatus.FOUND,
          cache_control=NO_STORE,
          server_timing=metrics.server_timing(),
          location=f'{source_path}?{ops.to_querystring()}',
          img_size=len(body))

    return InstantResponse(
        status=HTTPStatus.OK,
        cache_control=self.cache_control,
        server_timing=metrics.server_timing(),
        b64_body=base64.b64encode(body).decode(),
        content_type=content_type,
        img_size=len(body))


def error_result(status: int, message: str) -> FunctionUrlResult:
  return {
      'statusCode': int(status),
      'headers': {
          'Content-Type': JSON_MIME,
      },
      'body': json_dump({'error': message}),
  }


def response_result(res: InstantResponse) -> FunctionUrlResult:
  result: FunctionUrlResult = {
      'statusCode': int(res.status),
      'headers': {
          'Cache-Control': res.cache_control,
          'Server-Timing': res.server_timing,
      },
  }

  if res.content_type is not None:
    result['headers']['Content-Type'] = res.content_type

  if res.location is not None:
    result['headers']['Location'] = res.location

  if res.b64_body is not None:
    result['body'] = res.b64_body
    result['isBase64Encoded'] = True

  return result


def lambda_main(server: Optional[ImageProcessor], event: FunctionUrlEvent) -> FunctionUrlResult:
  if server is None:
    return error_result(HTTPStatus.INTERNAL_SERVER_ERROR, 'Image processor is not configured')

  http = event['requestContext']['http']
  method = http['method']
  path = HttpPath(http['path'])

  server.set_log_context(method, path)

  try:
    result = server.process(method, path)
  except ImageProcessingError as e:
    detail: dict[str, Any] = {'status': int(e.status)}
    if e.__cause__ is not None:
      detail['reason'] = str(e.__cause__)
    server.log_error(e.message, detail)
    return error_result(e.status, e.message)

  server.log_debug(
      'responded', {
          'status': result.status,
          'cache_control': result.cache_control,
          'content_type': result.content_type,
          'location': result.location,
          'img_size': result.img_size,
          'server_timing': result.server_timing,
      })

  return response_result(result)
