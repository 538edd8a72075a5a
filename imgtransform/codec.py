from typing import Any, Optional, Protocol

from pyvips import GValue, Image, Interesting  # type: ignore

from imgtransform.operations import ImageFormat

NO_ORIENTATION = 1

# Stands in for the unconstrained side of a thumbnail box.
VIPS_MAX_COORD = 10000000

# Loaders and savers that keep every frame of an animation.
ANIMATED_LOADERS = frozenset(['gifload', 'gifload_buffer', 'webpload', 'webpload_buffer'])
ANIMATED_FORMATS = frozenset([ImageFormat.GIF, ImageFormat.WEBP])

LOADER_EXTENSIONS = {
    'jpegload': '.jpg',
    'jpegload_buffer': '.jpg',
    'pngload': '.png',
    'pngload_buffer': '.png',
    'webpload': '.webp',
    'webpload_buffer': '.webp',
    'heifload': '.avif',
    'heifload_buffer': '.avif',
    'gifload': '.gif',
    'gifload_buffer': '.gif',
    'tiffload': '.tif',
    'tiffload_buffer': '.tif',
    # Vector input is rasterized.
    'svgload': '.png',
    'svgload_buffer': '.png',
}


class Codec(Protocol):
  """Pixel operations used by the image processor.

  Image handles are opaque to the caller; each method takes the value
  returned by the previous step.
  """

  def decode(self, data: bytes) -> Any:
    ...

  def orientation(self, image: Any) -> int:
    ...

  def resize(self, image: Any, width: Optional[int], height: Optional[int]) -> Any:
    ...

  def rotate(self, image: Any) -> Any:
    ...

  def encode(self, image: Any, image_format: Optional[ImageFormat], quality: Optional[int]) -> bytes:
    ...


def loader_of(image: Image) -> str:
  return image.get('vips-loader') if image.get_typeof('vips-loader') != 0 else ''


def page_height(image: Image) -> int:
  """Height of one frame, or of the whole image when it is not animated."""
  if image.get_typeof('page-height') == 0:
    return image.get('height')
  height = image.get('page-height')
  if height <= 0 or image.get('height') % height != 0:
    return image.get('height')
  return height


def first_page(image: Image) -> Image:
  height = page_height(image)
  if height == image.get('height'):
    return image
  return image.crop(0, 0, image.get('width'), height)


def thumbnail(image: Image, width: Optional[int], height: Optional[int]) -> Image:
  match (width, height):
    case (int(), int()):
      return image.thumbnail_image(
          width, height=height, crop=Interesting.CENTRE, size='both', no_rotate=True)
    case (int(), None):
      return image.thumbnail_image(width, height=VIPS_MAX_COORD, size='both', no_rotate=True)
    case (None, int()):
      return image.thumbnail_image(VIPS_MAX_COORD, height=height, size='both', no_rotate=True)
    case _:
      return image


class VipsCodec:
  """Codec backed by libvips.

  Animated GIF and WebP sources are loaded with every frame stacked
  vertically, ``page-height`` giving the height of one frame. Frames are
  resized one by one and kept when the target can animate; any other
  target gets the first frame only.
  """

  def decode(self, data: bytes) -> Image:
    image = Image.new_from_buffer(data, '')
    if loader_of(image) not in ANIMATED_LOADERS:
      return image
    if image.get_typeof('n-pages') == 0 or image.get('n-pages') <= 1:
      return image
    return Image.new_from_buffer(data, '', n=-1)

  def orientation(self, image: Image) -> int:
    if image.get_typeof('orientation') == 0:
      return NO_ORIENTATION
    return image.get('orientation')

  def resize(self, image: Image, width: Optional[int], height: Optional[int]) -> Image:
    if width is None and height is None:
      return image

    frame_height = page_height(image)
    if frame_height == image.get('height'):
      return thumbnail(image, width, height)

    frames = [
        thumbnail(image.crop(0, top, image.get('width'), frame_height), width, height)
        for top in range(0, image.get('height'), frame_height)
    ]
    joined = Image.arrayjoin(frames, across=1).copy()
    joined.set_type(GValue.gint_type, 'page-height', frames[0].get('height'))
    return joined

  def rotate(self, image: Image) -> Image:
    return image.autorot()

  def encode(
      self,
      image: Image,
      image_format: Optional[ImageFormat],
      quality: Optional[int],
  ) -> bytes:
    if image_format is None:
      loader = loader_of(image)
      if loader not in LOADER_EXTENSIONS:
        raise ValueError(f'unsupported source loader: {loader}')
      if loader not in ANIMATED_LOADERS:
        image = first_page(image)
      return image.write_to_buffer(LOADER_EXTENSIONS[loader])

    if image_format not in ANIMATED_FORMATS:
      image = first_page(image)

    if quality is not None:
      return image.write_to_buffer(image_format.extension(), Q=quality)

    return image.write_to_buffer(image_format.extension())
