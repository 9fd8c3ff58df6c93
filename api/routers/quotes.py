"""
Quote Request API Endpoints.

Public intake of consumer quote requests.
"""

from fastapi import APIRouter, HTTPException

from api.models import QuoteRequestBody, QuoteRequestResponse
from services.lead_intake_service import QuoteRequestInput, submit_quote_request

router = APIRouter()


@router.post(
    "/quote-requests",
    response_model=QuoteRequestResponse,
    summary="Submit Quote Request",
    description="Create a lead and route it to a provider (directly, or through metro rotation)."
)
def submit_quote(request: QuoteRequestBody):
    """
    Submit a quote request.

    **How it works:**
    1. Validates the form fields (422 with per-field errors)
    2. Creates the lead
    3. Sends the requester a confirmation email
    4. Routes the lead: metro pool rotation, direct delivery, or held
       for an unverified provider

    **Example request:**
    ```json
    {
      "first_name": "Dana",
      "last_name": "Reyes",
      "business_name": "Reyes Diner",
      "email": "dana@example.com",
      "phone": "(504) 555-0142",
      "address_line1": "100 Canal St",
      "city": "New Orleans",
      "state": "LA",
      "zip": "70130",
      "metro_id": "123e4567-e89b-12d3-a456-426614174000",
      "category_id": "123e4567-e89b-12d3-a456-426614174001"
    }
    ```
    """
    result = submit_quote_request(QuoteRequestInput(**request.model_dump()))

    if not result.ok:
        if result.field_errors:
            raise HTTPException(
                status_code=422,
                detail={"message": result.message, "field_errors": result.field_errors}
            )
        raise HTTPException(status_code=400, detail=result.message)

    return QuoteRequestResponse(ok=result.ok, message=result.message, lead_id=result.lead_id)
