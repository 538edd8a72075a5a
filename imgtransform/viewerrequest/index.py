from imgtransform.logs import init_logging
from imgtransform.operations import (
    AcceptHeader,
    Operations,
    parse_operation
)
from imgtransform.typing import HttpPath, ViewerRequest, ViewerRequestEvent

logger = init_logging(__name__)


def get_header(req: ViewerRequest, name: str, default: str = '') -> str:
  if name not in req['headers']:
    return default
  return req['headers'][name]['value']


def build_operations(req: ViewerRequest) -> Operations:
  accept = AcceptHeader.from_str(get_header(req, 'accept'))

  ops = []
  for name, qv in req['querystring'].items():
    op = parse_operation(name, qv['value'], accept)
    if op is not None:
      ops.append(op)

  return Operations.build(ops)


def normalize(req: ViewerRequest) -> ViewerRequest:
  """Rewrite ``uri`` into its canonical form and drop the querystring.

  ``/photo.jpg?width=100&format=auto`` becomes
  ``/photo.jpg/format=webp,width=100`` for a client accepting WebP.
  """
  if not req.get('querystring'):
    ops = Operations()
  else:
    ops = build_operations(req)

  req['uri'] = HttpPath(f"{req['uri']}/{ops.to_descriptor()}")
  req['querystring'] = {}

  return req


def lambda_main(event: ViewerRequestEvent) -> ViewerRequest:
  req = event['request']
  uri = req['uri']

  normalize(req)

  logger.debug({
      'message': 'rewritten',
      'original_uri': uri,
      'uri': req['uri'],
  })

  return req
