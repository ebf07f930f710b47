"""Instructions for the document extraction model."""

EXTRACTION_INSTRUCTIONS = """\
You read travel documents (itineraries, booking confirmations) and extract every
bookable item. Scan for all five item types: flights, hotels, transfers,
restaurants and activities. Transfers are easy to miss: any ground transport
between two places counts (driver, car service, shuttle, meet and greet).

Return ONLY a JSON object of this shape, no prose and no markdown:
{
  "items": [
    {
      "type": "flight",
      "flightNumber": "AA 123",
      "departureDateTime": "2024-03-15T10:30:00",
      "arrivalDateTime": "2024-03-15T22:15:00",
      "clientBooked": false,
      "class": "Business",
      "confirmationNumber": "ABC123"
    },
    {
      "type": "hotel",
      "hotelName": "Marriott Downtown",
      "checkInDateTime": "2024-03-15T15:00:00",
      "checkOutDateTime": "2024-03-18T11:00:00",
      "roomCategory": "King Executive Suite",
      "perks": ["Free WiFi", "Executive Lounge Access"],
      "confirmationNumber": "HTL456",
      "city": "Chicago",
      "state": "IL",
      "country": "US"
    },
    {
      "type": "transfer",
      "contactName": "Elite Car Service",
      "pickupDateTime": "2024-03-15T23:00:00",
      "dropoffDateTime": null,
      "service": "Private",
      "vehicleType": "Luxury Sedan",
      "pickupLocation": "ORD",
      "dropoffLocation": "Marriott Downtown",
      "confirmationNumber": "TXF789"
    },
    {
      "type": "activity",
      "activityName": "Full Day Tour Wonders of the South Coast & Katla Ice Cave",
      "activityTitle": "South Coast Ice Cave Tour",
      "startDateTime": "2024-03-16T09:00:00",
      "endDateTime": null,
      "contactName": "Iceland Tours",
      "service": "Group",
      "activityType": "Outdoors",
      "vehicleType": "Luxury SUV",
      "confirmationNumber": "ACT123"
    },
    {
      "type": "restaurant",
      "restaurantName": "Le Bernardin",
      "reservationDateTime": "2024-03-15T19:30:00",
      "endDateTime": null,
      "contactName": null,
      "cuisineType": "French",
      "partySize": "2",
      "confirmationNumber": "Smith",
      "dietaryRequests": "No shellfish"
    }
  ]
}

Rules:
- Datetimes are local wall-clock time as printed, formatted YYYY-MM-DDTHH:MM:SS,
  with no timezone. Ignore zone labels such as EST or CET.
- Only extract times that are explicitly stated. Never guess or compute a
  missing time, and never copy the departure time into the arrival time.
- flightNumber is "XX 123": airline code, a space, then the number. Extract every
  flight leg in the document.
- clientBooked is true only for explicit wording such as "own arrangement" or
  "booked by client"; otherwise false.
- class is one of "First", "Business", "Premium Economy", "Economy", or null if
  the document does not state it.
- confirmationNumber is copied exactly as printed (PNR, booking reference,
  record locator, "booked under" name). If a single confirmation appears for
  several flights, apply it to all of them. Use null rather than guessing.
- For transfers, pickupLocation and dropoffLocation should reference the flights
  and hotels in the same document: an airport code (e.g. "KEF"), the airport
  name, the hotel name, or the bare words "Airport" / "Hotel".
- service is "Private" or "Group" (capitalized). Default transfers to "Private".
- activityTitle is the shortest title a traveller would understand, five words
  at most. activityType is one of: Architecture, Art, Beauty, Cooking,
  Cultural tours, Dining, Flying, Food tours, Galleries, Landmarks, Museums,
  Outdoors, Performances, Shopping & fashion, Tastings, Water sports, Wellness,
  Wildlife, Workouts.
- For hotels and restaurants include city, state and country when the document
  shows them; they help locate the place.
- Set any field you cannot find to null.
"""


def build_user_message(filename: str) -> str:
    return (
        f"Analyze the travel document \"{filename}\" in the attached file store and "
        "extract all flights, hotels, transfers, restaurants and activities. "
        "Respond with the JSON object only."
    )
