from typing import Literal, NewType, NotRequired, ReadOnly, TypedDict

HttpPath = NewType('HttpPath', str)
S3Key = NewType('S3Key', str)

HttpMethod = Literal['GET', 'HEAD', 'OPTIONS', 'TRACE', 'PUT', 'DELETE', 'POST', 'PATCH', 'CONNECT']


class Value(TypedDict):
  value: str


class MultiValue(TypedDict):
  value: str
  multiValue: NotRequired[list[Value]]


# CloudFront Functions viewer-request event


class ViewerRequest(TypedDict):
  method: NotRequired[ReadOnly[HttpMethod]]
  uri: HttpPath
  querystring: dict[str, MultiValue]
  headers: dict[str, MultiValue]
  cookies: NotRequired[dict[str, MultiValue]]


class ViewerContext(TypedDict):
  distributionDomainName: ReadOnly[str]
  distributionId: ReadOnly[str]
  eventType: ReadOnly[Literal['viewer-request']]
  requestId: ReadOnly[str]


class ViewerRequestEvent(TypedDict):
  version: NotRequired[ReadOnly[str]]
  context: NotRequired[ReadOnly[ViewerContext]]
  request: ViewerRequest


# Lambda function URL event (payload format 2.0)


class HttpContext(TypedDict):
  method: ReadOnly[HttpMethod]
  path: ReadOnly[str]
  protocol: NotRequired[ReadOnly[str]]
  sourceIp: NotRequired[ReadOnly[str]]
  userAgent: NotRequired[ReadOnly[str]]


class RequestContext(TypedDict):
  http: HttpContext
  requestId: NotRequired[ReadOnly[str]]


class FunctionUrlEvent(TypedDict):
  rawPath: NotRequired[ReadOnly[str]]
  rawQueryString: NotRequired[ReadOnly[str]]
  headers: NotRequired[dict[str, str]]
  requestContext: RequestContext
  isBase64Encoded: NotRequired[ReadOnly[bool]]


class FunctionUrlResult(TypedDict):
  statusCode: int
  headers: dict[str, str]
  body: NotRequired[str]
  isBase64Encoded: NotRequired[bool]
