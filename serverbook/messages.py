"""
User-facing message texts.
"""

# Booking lifecycle
BOOKING_STARTING = "Your server is being started, please wait."
BOOKING_START_SUCCESS = "Your server is ready, connection details have been sent to you privately."
BOOKING_START_FAILED = "Failed to start your server. Please try again later."
BOOKING_PROVIDER_OVERLOADED = "All servers in this region are currently in use. Please try again later or pick another region."
BOOKING_CLIENT_FORBIDDEN = "This booking client is not allowed to start servers with the selected provider."
BOOKING_STOPPING = "Your server is being stopped, please wait."
BOOKING_STOP_SUCCESS = "Your server has been stopped."
BOOKING_STOP_FAILED = "Failed to stop your server. Please try again later."
BOOKING_STOP_IN_PROGRESS = "Your server has been unbooked automatically and is currently stopping. Please wait until it completes."
BOOKING_SERVER_FAILED = "Your server failed unexpectedly and has been closed."
BOOKING_ALREADY_EXISTS = "You already have an active booking."
BOOKING_RESERVATION_ALREADY_EXISTS = "You already have a scheduled reservation."
BOOKING_REACHED_LIMIT = "{region} has reached its booking limit. Please try again later or pick another region."
BOOKING_ONGOING = "Your server is still starting. Please wait until it is ready before unbooking."
BOOKING_NO_DETAILS_DURING_STARTING = "Your server is still starting, details will be sent once it is ready."
BOOKING_FAILED_TO_SEND_PRIVATE_DM = "Your server is ready but I could not message you privately. Please allow direct messages and use resend."
BOOKING_FAILED_TO_SEND_DM = "Your server is ready but the connection details could not be delivered. Please use resend."
BOOKING_RESERVE_CREATED = "Your reservation has been scheduled, the server will start in {time}."
BOOKING_RESERVE_NOT_ALLOWED = "Reservations are not available for this tier."
BOOKING_RESERVATION_SKIPPED_ACTIVE = "Your reservation was cancelled because you already have an active booking."

# Admin
ADMIN_ALREADY_EXISTS = "{user} already has an active booking."
ADMIN_RESERVATION_ALREADY_EXISTS = "{user} already has a scheduled reservation."
ADMIN_ONGOING = "The booking of {user} is still starting and cannot be stopped yet."
ADMIN_STARTING = "Starting a server for {user}."
ADMIN_USER_HAS_NO_BOOKING = "{user} does not have an active booking."
ADMIN_NO_ACTIVE_BOOKINGS = "There are no active bookings."
ADMIN_USER_NO_BOOKINGS = "{user} has never booked a server."
ADMIN_USER_NO_ACTIVE_BOOKINGS = "{user} does not have any active bookings. Recent bookings:"
ADMIN_REGION_NO_BOOKINGS = "No bookings have been made in {region}."
ADMIN_REGION_NO_ACTIVE_BOOKINGS = "There are no active bookings in {region}. Recent bookings:"

# Regions and tiers
REGION_UNKNOWN = "Unknown region."
REGION_RESTRICTED = "You do not have access to {region}."
REGION_NOT_FOUND = "No region found with key '{region}'"
TIER_UNKNOWN = "Unknown tier."
VARIANT_UNKNOWN = "Unknown game variant."

# Commands
UNBOOK_NO_BOOKING = "You do not have an active booking."
RESEND_NO_BOOKING = "You do not have an active booking."
UNRESERVE_NO_RESERVATION = "You do not have a scheduled reservation."
UNRESERVE_CANCELLED = "Your reservation has been cancelled."
BOOK_MULTI_RESTRICTED = "You are not allowed to book servers for other users."
BOOK_CANNOT_SELF_MULTI_BOOK = "Use the regular book command to book a server for yourself."
BOOK_USER_IS_BOT = "Bots cannot book servers."
RESERVE_RESTRICTED = "You are not allowed to make reservations."
RESERVE_INVALID_TIME = "Invalid reservation time."
RESERVE_TOO_SHORT_TIME = "Reservations must be at least 10 minutes ahead. Book the server now instead."
RESERVE_TOO_LONG_TIME = "Reservations can only be made for the same day."
RCON_NO_SERVER = "You currently do not have any active booking."
RCON_FAILED = "Failed to connect to the server. Please try again later."

# Settings
SETTING_SAVED = "Your setting has been saved."
SETTING_DISABLED = "This setting is currently disabled."
SETTING_NO_ACCESS = "Your setting has been saved. However, you do not have the proper role so you will not see this change."
PASSWORD_HAS_SPACES = "Passwords cannot contain spaces."
BOOK_PROVIDER_RESTRICTED = "Currently you do not have access to selecting server provider."
BOOK_VARIANT_RESTRICTED = "Currently you do not have access to selecting game variants."
BOOK_REGION_REQUIRED = "You need to specify a region."
BOOK_VARIANT_REQUIRED = "You need to specify a game variant."
SETTING_UNKNOWN = "Unknown setting."
