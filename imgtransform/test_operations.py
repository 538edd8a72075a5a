from typing import Optional

import pytest

from imgtransform.typing import HttpPath

from .operations import (
    AcceptHeader,
    ImageFormat,
    Operation,
    OperationName,
    Operations,
    key_from_path,
    negotiate_format,
    parse_number,
    parse_operation,
    split_canonical_path
)

CHROME_ACCEPT_HEADER = 'image/avif,image/webp,image/apng,image/*,*/*;q=0.8'
OLD_CHROME_ACCEPT_HEADER = 'image/webp,image/apng,image/*,*/*;q=0.8'
OLD_SAFARI_ACCEPT_HEADER = 'image/png,image/svg+xml,image/*;q=0.8,video/*;q=0.8,*/*;q=0.5'


@pytest.mark.parametrize(
    'value,maximum,expected', [
        ('120', 4000, 120),
        ('120px', 4000, 120),
        (' 7', 100, 7),
        ('9999', 4000, 4000),
        ('101', 100, 100),
        ('0', 4000, None),
        ('-5', 4000, None),
        ('abc', 4000, None),
        ('', 4000, None),
        ('1.5', 4000, 1),
        ('9' * 5000, 4000, 4000),
        ('0' * 5000 + '12', 4000, 12),
        ('+12', 100, 12),
        ('\u0663\u0660', 4000, None),
    ],
    ids=[
        'plain',
        'trailing_garbage',
        'leading_space',
        'clamp_dimension',
        'clamp_quality',
        'zero',
        'negative',
        'not_a_number',
        'empty',
        'decimal',
        'huge',
        'leading_zeros',
        'plus_sign',
        'non_ascii_digits',
    ])
def test_parse_number(value: str, maximum: int, expected: Optional[int]) -> None:
  assert parse_number(value, maximum) == expected


@pytest.mark.parametrize(
    'token,accept_header,expected', [
        ('auto', CHROME_ACCEPT_HEADER, ImageFormat.AVIF),
        ('auto', OLD_CHROME_ACCEPT_HEADER, ImageFormat.WEBP),
        ('auto', OLD_SAFARI_ACCEPT_HEADER, ImageFormat.JPEG),
        ('AUTO', '', ImageFormat.JPEG),
        ('webp', OLD_SAFARI_ACCEPT_HEADER, ImageFormat.WEBP),
        ('PNG', '', ImageFormat.PNG),
        ('gif', '', ImageFormat.GIF),
        ('svg', CHROME_ACCEPT_HEADER, None),
        ('bmp', CHROME_ACCEPT_HEADER, None),
    ],
    ids=[
        'auto/avif',
        'auto/webp',
        'auto/fallback',
        'auto/upper_case',
        'explicit_ignores_accept',
        'explicit/upper_case',
        'gif',
        'svg_unsupported',
        'unknown',
    ])
def test_negotiate_format(token: str, accept_header: str, expected: Optional[ImageFormat]) -> None:
  assert negotiate_format(token, AcceptHeader.from_str(accept_header)) == expected


def test_negotiate_format_without_accept() -> None:
  assert negotiate_format('auto', None) == ImageFormat.JPEG


@pytest.mark.parametrize(
    'name,value,expected', [
        ('width', '300', Operation(OperationName.WIDTH, 300)),
        ('Height', '9999', Operation(OperationName.HEIGHT, 4000)),
        ('quality', '150', Operation(OperationName.QUALITY, 100)),
        ('format', 'auto', Operation(OperationName.FORMAT, ImageFormat.WEBP)),
        ('width', 'wide', None),
        ('quality', '0', None),
        ('height', '-1', None),
        ('format', 'tiff', None),
        ('crop', '10', None),
    ],
    ids=[
        'width',
        'height/clamped',
        'quality/clamped',
        'format/negotiated',
        'width/malformed',
        'quality/zero',
        'height/negative',
        'format/unsupported',
        'unknown_key',
    ])
def test_parse_operation(name: str, value: str, expected: Optional[Operation]) -> None:
  assert parse_operation(name, value, AcceptHeader.from_str(OLD_CHROME_ACCEPT_HEADER)) == expected


def test_build_keeps_last_value() -> None:
  ops = Operations.build([
      Operation(OperationName.WIDTH, 100),
      Operation(OperationName.WIDTH, 200),
  ])
  assert ops == Operations(width=200)


@pytest.mark.parametrize(
    'ops,descriptor', [
        (Operations(), 'original'),
        (Operations(width=100), 'width=100'),
        (
            Operations(format=ImageFormat.WEBP, quality=80, width=100, height=50),
            'format=webp,quality=80,width=100,height=50',
        ),
        (Operations(height=50, format=ImageFormat.PNG), 'format=png,height=50'),
        (Operations(quality=30, width=4000), 'quality=30,width=4000'),
    ],
    ids=[
        'empty',
        'single',
        'all',
        'fixed_order',
        'without_format',
    ])
def test_descriptor(ops: Operations, descriptor: str) -> None:
  assert ops.to_descriptor() == descriptor
  assert Operations.from_descriptor(descriptor) == ops


@pytest.mark.parametrize(
    'descriptor,expected', [
        ('height=50,width=100', Operations(width=100, height=50)),
        ('width=abc,height=20', Operations(height=20)),
        ('width,height=20', Operations(height=20)),
        ('blur=3,format=jpeg', Operations(format=ImageFormat.JPEG)),
        ('format=svg', Operations()),
        ('', Operations()),
        ('width=9999', Operations(width=4000)),
        ('width=' + '9' * 5000, Operations(width=4000)),
    ],
    ids=[
        'any_order',
        'malformed_value',
        'missing_value',
        'unknown_key',
        'unsupported_format',
        'empty',
        'clamped',
        'huge',
    ])
def test_from_descriptor_is_lenient(descriptor: str, expected: Operations) -> None:
  assert Operations.from_descriptor(descriptor) == expected


def test_to_querystring() -> None:
  ops = Operations(format=ImageFormat.AVIF, width=100, height=50)
  assert ops.to_querystring() == 'format=avif&width=100&height=50'


@pytest.mark.parametrize(
    'ops,source,expected', [
        (Operations(format=ImageFormat.WEBP), 'image/jpeg', 'image/webp'),
        (Operations(format=ImageFormat.JPEG), 'image/svg+xml', 'image/jpeg'),
        (Operations(width=10), 'image/png', 'image/png'),
        (Operations(), 'image/svg+xml', 'image/png'),
    ],
    ids=[
        'resolved',
        'resolved_from_svg',
        'preserved',
        'svg_rasterized',
    ])
def test_content_type(ops: Operations, source: str, expected: str) -> None:
  assert ops.content_type(source) == expected


@pytest.mark.parametrize(
    'path,source,descriptor', [
        ('/photo.jpg/original', '/photo.jpg', 'original'),
        ('/a/b/photo.jpg/format=webp,width=10', '/a/b/photo.jpg', 'format=webp,width=10'),
        ('/photo.jpg', '', 'photo.jpg'),
    ],
    ids=[
        'original',
        'nested',
        'no_descriptor',
    ])
def test_split_canonical_path(path: str, source: str, descriptor: str) -> None:
  assert split_canonical_path(HttpPath(path)) == (source, descriptor)


def test_key_from_path() -> None:
  assert key_from_path(HttpPath('/%E3%83%86%E3%82%B9%E3%83%88.jpg')) == 'テスト.jpg'
  assert key_from_path(HttpPath('/a/b.png')) == 'a/b.png'
