import dataclasses
from typing import Mapping, Self

DEFAULT_CACHE_CONTROL = 'max-age=31622400'
DEFAULT_MAX_IMAGE_SIZE = 4_700_000
DEFAULT_REGION = 'us-east-1'


@dataclasses.dataclass(eq=True, frozen=True)
class Config:
  """Process-wide settings, read once at cold start.

  An empty ``transformed_bucket`` disables persistence of transformed
  images (and with it the oversize redirect).
  """
  original_bucket: str
  transformed_bucket: str = ''
  cache_control: str = DEFAULT_CACHE_CONTROL
  max_image_size: int = DEFAULT_MAX_IMAGE_SIZE
  region: str = DEFAULT_REGION

  @classmethod
  def from_environ(cls, environ: Mapping[str, str]) -> Self:
    """Raises ``KeyError`` or ``ValueError`` on a missing or malformed variable."""
    max_image_size = int(environ.get('MAX_IMAGE_SIZE') or DEFAULT_MAX_IMAGE_SIZE)
    if max_image_size <= 0:
      raise ValueError(f'invalid MAX_IMAGE_SIZE: {max_image_size}')

    return cls(
        original_bucket=environ['ORIGINAL_BUCKET'],
        transformed_bucket=environ.get('TRANSFORMED_BUCKET', ''),
        cache_control=environ.get('TRANSFORMED_IMAGE_CACHE_TTL') or DEFAULT_CACHE_CONTROL,
        max_image_size=max_image_size,
        region=environ.get('AWS_REGION') or DEFAULT_REGION)
