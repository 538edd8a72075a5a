import dataclasses
import re
from enum import Enum
from typing import Iterable, Optional, Self, Tuple
from urllib import parse

from imgtransform.typing import HttpPath, S3Key

MAX_DIMENSION = 4000
MAX_QUALITY = 100

AUTO_FORMAT = 'auto'
ORIGINAL = 'original'

SVG_MIME = 'image/svg+xml'
SVG_FALLBACK_MIME = 'image/png'

# Sign, then the digits without leading zeros.
leading_int_re = re.compile(r'\s*([+-]?)0*([0-9]+)', re.ASCII)


class ImageFormat(Enum):
  JPEG = 'jpeg'
  PNG = 'png'
  WEBP = 'webp'
  AVIF = 'avif'
  GIF = 'gif'

  @classmethod
  def maybe_from_str(cls, s: str) -> Optional['ImageFormat']:
    try:
      return cls(s.lower())
    except ValueError:
      return None

  @property
  def content_type(self) -> str:
    return f'image/{self.value}'

  @property
  def lossy(self) -> bool:
    return self in (ImageFormat.JPEG, ImageFormat.WEBP, ImageFormat.AVIF)

  def extension(self) -> str:
    if self == ImageFormat.JPEG:
      return '.jpg'
    return f'.{self.value}'


class AcceptHeader:
  types: frozenset[ImageFormat]

  def __init__(self, types: frozenset[ImageFormat]):
    self.types = types

  @classmethod
  def from_str(cls, accept_header: str) -> Self:
    types = set()

    if 'avif' in accept_header:
      types.add(ImageFormat.AVIF)

    if 'webp' in accept_header:
      types.add(ImageFormat.WEBP)

    return cls(frozenset(types))

  def supports(self, image_format: ImageFormat) -> bool:
    return image_format in self.types

  def preferred(self) -> ImageFormat:
    # Smallest output first.
    for image_format in (ImageFormat.AVIF, ImageFormat.WEBP):
      if self.supports(image_format):
        return image_format
    return ImageFormat.JPEG


def negotiate_format(token: str, accept: Optional[AcceptHeader]) -> Optional[ImageFormat]:
  """Resolve a requested format token into a concrete output format.

  ``auto`` picks the most compact format the client advertises. Unsupported
  tokens resolve to ``None``, which keeps the source format.
  """
  if token.lower() == AUTO_FORMAT:
    return (accept or AcceptHeader.from_str('')).preferred()
  return ImageFormat.maybe_from_str(token)


class OperationName(Enum):
  FORMAT = 'format'
  QUALITY = 'quality'
  WIDTH = 'width'
  HEIGHT = 'height'

  @classmethod
  def maybe_from_str(cls, s: str) -> Optional['OperationName']:
    try:
      return cls(s.lower())
    except ValueError:
      return None


# Serialization order of the canonical descriptor.
DESCRIPTOR_ORDER = (
    OperationName.FORMAT,
    OperationName.QUALITY,
    OperationName.WIDTH,
    OperationName.HEIGHT,
)


@dataclasses.dataclass(eq=True, frozen=True)
class Operation:
  name: OperationName
  value: int | ImageFormat

  def __str__(self) -> str:
    if isinstance(self.value, ImageFormat):
      return f'{self.name.value}={self.value.value}'
    return f'{self.name.value}={self.value}'


def parse_number(value: str, maximum: int) -> Optional[int]:
  """Parse the leading base-10 digits of ``value``, clamped to ``maximum``.

  Returns ``None`` for anything that is not a positive integer.
  """
  m = leading_int_re.match(value)
  if m is None:
    return None

  sign, digits = m[1], m[2]
  if sign == '-' or digits == '0':
    return None

  # Avoid int() on arbitrarily long digit runs.
  if len(str(maximum)) < len(digits):
    return maximum

  return min(int(digits), maximum)


def parse_operation(name: str, value: str, accept: Optional[AcceptHeader]) -> Optional[Operation]:
  op_name = OperationName.maybe_from_str(name)

  match op_name:
    case OperationName.FORMAT:
      image_format = negotiate_format(value, accept)
      if image_format is None:
        return None
      return Operation(op_name, image_format)
    case OperationName.WIDTH | OperationName.HEIGHT:
      n = parse_number(value, MAX_DIMENSION)
    case OperationName.QUALITY:
      n = parse_number(value, MAX_QUALITY)
    case _:
      return None

  if n is None:
    return None
  return Operation(op_name, n)


@dataclasses.dataclass(eq=True, frozen=True)
class Operations:
  format: Optional[ImageFormat] = None
  quality: Optional[int] = None
  width: Optional[int] = None
  height: Optional[int] = None

  @classmethod
  def build(cls, ops: Iterable[Operation]) -> Self:
    fields: dict[str, int | ImageFormat] = {}
    for op in ops:
      fields[op.name.value] = op.value
    return cls(**fields)  # type: ignore[arg-type]

  @classmethod
  def from_descriptor(cls, descriptor: str) -> Self:
    if descriptor == ORIGINAL:
      return cls()

    ops = []
    for token in descriptor.split(','):
      name, sep, value = token.partition('=')
      if sep == '':
        continue
      op = parse_operation(name, value, None)
      if op is not None:
        ops.append(op)

    return cls.build(ops)

  def get(self, name: OperationName) -> Optional[int | ImageFormat]:
    return getattr(self, name.value)

  def operations(self) -> list[Operation]:
    ops = []
    for name in DESCRIPTOR_ORDER:
      value = self.get(name)
      if value is not None:
        ops.append(Operation(name, value))
    return ops

  def to_descriptor(self) -> str:
    ops = self.operations()
    if len(ops) == 0:
      return ORIGINAL
    return ','.join(str(op) for op in ops)

  def to_querystring(self) -> str:
    return self.to_descriptor().replace(',', '&')

  def content_type(self, source_content_type: str) -> str:
    if self.format is not None:
      return self.format.content_type
    if source_content_type == SVG_MIME:
      return SVG_FALLBACK_MIME
    return source_content_type


def split_canonical_path(path: HttpPath) -> Tuple[HttpPath, str]:
  """Split ``/<source>/<descriptor>`` into the source path and the descriptor."""
  source, _, descriptor = path.rpartition('/')
  return HttpPath(source), descriptor


def key_from_path(path: HttpPath) -> S3Key:
  return S3Key(parse.unquote(path[1:]))
