import os

from aws_lambda_powertools.utilities.typing import LambdaContext

from imgtransform.imageprocessor import index as imageprocessor
from imgtransform.typing import (
    FunctionUrlEvent,
    FunctionUrlResult,
    ViewerRequest,
    ViewerRequestEvent
)
from imgtransform.viewerrequest import index as viewerrequest

# Read once per cold start.
image_processor = imageprocessor.ImageProcessor.from_environ(imageprocessor.logger, os.environ)


def viewer_request_lambda_handler(
    event: ViewerRequestEvent,
    _: LambdaContext,
) -> ViewerRequest:
  return viewerrequest.lambda_main(event)


def image_processor_lambda_handler(
    event: FunctionUrlEvent,
    _: LambdaContext,
) -> FunctionUrlResult:
  return imageprocessor.lambda_main(image_processor, event)
