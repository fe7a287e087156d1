"""Cloud Functions entry point for Catalog Image Extractor."""

import functions_framework


@functions_framework.http
def catalog_image_extractor(request):
    """Cloud Function entry point - delegates to the Flask application."""
    from catalog_images.main import catalog_image_extractor as handler
    return handler(request)
