import os
import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from urllib.parse import urljoin
from uuid import uuid4

import bcrypt
from dotenv import load_dotenv
from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt,
    get_jwt_identity,
    jwt_required,
)
from flask_pymongo import PyMongo
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import secure_filename

from coupons import apply_coupon, list_coupons, normalize_coupon_code, serialize_coupon
from errors import StoreError
from helpers import (
    is_number,
    is_valid_email,
    isoformat_utc,
    normalize_email,
    normalize_object_id_value,
    parse_iso_date,
    safe_float,
    safe_positive_int,
)
from notifications import (
    ResendNotifier,
    build_announcement_email,
    build_seller_verification_email,
    build_verification_email,
)
from orders import OrderService
from pricing import (
    FREE_DELIVERY_THRESHOLD,
    ORDER_DISCOUNT_RATE,
    STANDARD_DELIVERY_CHARGE,
)

load_dotenv()

ALLOWED_USER_ROLES = {"admin", "standard"}
PLACEHOLDER_VALUE = "Not Available"
MAX_PRODUCT_IMAGES = 5


def create_app(
    config_overrides: Optional[Dict] = None, database=None, notifier=None
) -> Flask:
    """Create and configure the Flask application.

    ``database`` and ``notifier`` replace the PyMongo database and the Resend
    transport; both are built from configuration when omitted.
    """
    app = Flask(__name__)

    trusted_proxy_hops_raw = os.getenv("TRUSTED_PROXY_HOPS", "1")
    try:
        trusted_proxy_hops = max(0, int(trusted_proxy_hops_raw))
    except (TypeError, ValueError):
        trusted_proxy_hops = 1
    if trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=trusted_proxy_hops,
            x_proto=trusted_proxy_hops,
            x_host=trusted_proxy_hops,
            x_port=trusted_proxy_hops,
        )

    # --- Configuration ---
    app.config["JWT_SECRET_KEY"] = os.getenv(
        "JWT_SECRET_KEY", "change-me-in-production"
    )
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=1)
    app.config["MONGO_URI"] = os.getenv(
        "MONGO_URI", "mongodb://localhost:27017/storefront"
    )
    max_upload_mb = int(os.getenv("MAX_UPLOAD_SIZE_MB", "16"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload_mb * 1024 * 1024
    app.config["PRODUCT_UPLOAD_FOLDER"] = os.path.join(app.root_path, "uploads")
    app.config["PRODUCT_ALLOWED_EXTENSIONS"] = {"png", "jpg", "jpeg", "gif", "webp"}
    app.config["RESEND_API_KEY"] = (os.getenv("RESEND_API_KEY") or "").strip()
    app.config["MAIL_SENDER"] = (
        os.getenv("MAIL_SENDER") or "Storefront <orders@storefront.local>"
    )
    app.config["BASE_URL"] = os.getenv("BASE_URL", "http://localhost:5000")
    app.config["DEFAULT_ADMIN_EMAIL"] = os.getenv(
        "DEFAULT_ADMIN_EMAIL", "admin@storefront.local"
    )
    app.config["FREE_DELIVERY_THRESHOLD"] = safe_float(
        os.getenv("FREE_DELIVERY_THRESHOLD"), FREE_DELIVERY_THRESHOLD
    )
    app.config["ORDER_DISCOUNT_RATE"] = safe_float(
        os.getenv("ORDER_DISCOUNT_RATE"), ORDER_DISCOUNT_RATE
    )
    app.config["STANDARD_DELIVERY_CHARGE"] = safe_float(
        os.getenv("STANDARD_DELIVERY_CHARGE"), STANDARD_DELIVERY_CHARGE
    )
    app.config.update(config_overrides or {})

    os.makedirs(app.config["PRODUCT_UPLOAD_FOLDER"], exist_ok=True)

    # --- Initialize extensions ---
    allowed_origins = [
        "http://localhost:5173",
        "http://localhost:3000",
        os.getenv("FRONTEND_URL", "").strip(),
    ]
    cors_extra = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if cors_extra:
        for origin in cors_extra.split(","):
            trimmed = origin.strip()
            if trimmed:
                allowed_origins.append(trimmed)
    allowed_origins = [origin for origin in allowed_origins if origin]

    CORS(app, supports_credentials=True, origins=allowed_origins or "*")

    JWTManager(app)
    if database is None:
        database = PyMongo(app).db
    db = database

    if notifier is None:
        notifier = ResendNotifier(app.config["RESEND_API_KEY"], app.logger)

    mail_sender = app.config["MAIL_SENDER"]
    default_admin_email = normalize_email(app.config["DEFAULT_ADMIN_EMAIL"])

    order_service = OrderService(
        db,
        notifier,
        sender=mail_sender,
        threshold=app.config["FREE_DELIVERY_THRESHOLD"],
        discount_rate=app.config["ORDER_DISCOUNT_RATE"],
        delivery_charge=app.config["STANDARD_DELIVERY_CHARGE"],
        logger=app.logger,
    )

    otp_code_length = 6
    otp_expiration_minutes = 5
    max_failed_otp_attempts = 5
    email_verification_collection = db.email_verification_tokens

    try:
        email_verification_collection.create_index(
            "expires_at", expireAfterSeconds=0
        )
    except PyMongoError as exc:
        app.logger.warning(
            "Unable to ensure TTL index for verification codes: %s", exc
        )

    try:
        db.users.create_index("email", unique=True)
        db.sellers.create_index("seller_id", unique=True)
        db.sellers.create_index("email", unique=True)
        db.carts.create_index("user_id", unique=True)
        db.coupons.create_index("code", unique=True)
        db.products.create_index("product_id", unique=True)
    except PyMongoError as exc:
        app.logger.warning("Unable to ensure unique indexes: %s", exc)

    # --- Helpers ---

    def error_response(message: str, status: int, error: Optional[str] = None):
        body = {"success": False, "message": message}
        if error:
            body["error"] = error
        return jsonify(body), status

    def normalize_role(value: Optional[str]) -> str:
        normalized = str(value or "").strip().lower()
        return normalized if normalized in ALLOWED_USER_ROLES else "standard"

    def get_user_role(user_document) -> str:
        if not user_document:
            return "standard"

        if normalize_email(user_document.get("email")) == default_admin_email:
            return "admin"

        return normalize_role(user_document.get("role", "standard"))

    def resolve_current_account():
        identity = get_jwt_identity()
        if get_jwt().get("account_type") == "seller":
            seller = db.sellers.find_one({"seller_id": identity})
            if not seller or seller.get("account_status") == "blocked":
                return None, None
            return seller, "seller"

        user = db.users.find_one({"email": normalize_email(identity)})
        return user, get_user_role(user) if user else None

    def require_role(*roles: str):
        allowed = {role for role in roles if role}
        account, role = resolve_current_account()

        if account and (role == "admin" or not allowed or role in allowed):
            return account, role, None

        return (
            None,
            None,
            error_response(
                "You need additional permissions to perform this action.", 403
            ),
        )

    def generate_otp_code(length: int = otp_code_length) -> str:
        upper_bound = 10**length
        return f"{secrets.randbelow(upper_bound):0{length}d}"

    def persist_verification_code(email: str, otp: str) -> datetime:
        expires_at = datetime.utcnow() + timedelta(minutes=otp_expiration_minutes)
        hashed_code = bcrypt.hashpw(otp.encode("utf-8"), bcrypt.gensalt())

        email_verification_collection.update_one(
            {"email": email},
            {
                "$set": {
                    "email": email,
                    "otp_hash": hashed_code,
                    "expires_at": expires_at,
                    "created_at": datetime.utcnow(),
                    "failed_attempts": 0,
                }
            },
            upsert=True,
        )

        return expires_at

    def send_email(payload: Dict[str, object]):
        try:
            return notifier.send(payload)
        except Exception as exc:
            return False, str(exc)

    def dispatch_verification_code(email: str):
        otp = generate_otp_code()
        expires_at = persist_verification_code(email, otp)

        sent, error_details = send_email(
            build_verification_email(mail_sender, email, otp, otp_expiration_minutes)
        )
        if not sent:
            email_verification_collection.delete_one({"email": email})
            app.logger.error(
                "OTP dispatch failed for %s: %s",
                email,
                error_details or "Unknown Resend error",
            )
            return {
                "success": False,
                "error": error_details or "Failed to deliver verification email.",
            }

        return {
            "success": True,
            "expires_at": expires_at,
            "otp_length": otp_code_length,
        }

    def broadcast_to_users(subject: str, message: str) -> int:
        try:
            recipients = [
                document.get("email")
                for document in db.users.find({}, {"email": 1})
            ]
        except PyMongoError as exc:
            app.logger.error("Error fetching users for broadcast: %s", exc)
            return 0

        delivered = 0
        for email in recipients:
            if not email:
                continue
            sent, error_details = send_email(
                build_announcement_email(mail_sender, email, subject, message)
            )
            if sent:
                delivered += 1
            else:
                app.logger.error("Error sending email to %s: %s", email, error_details)
        return delivered

    def generate_seller_id() -> str:
        while True:
            candidate = f"MBSLR{10000 + secrets.randbelow(90000)}"
            if not db.sellers.find_one({"seller_id": candidate}):
                return candidate

    def serialize_user_profile(user_document) -> Dict[str, object]:
        if not user_document:
            return {}

        return {
            "id": str(user_document.get("_id")),
            "name": user_document.get("name", "") or "",
            "email": user_document.get("email", "") or "",
            "phone": user_document.get("phone", "") or "",
            "role": get_user_role(user_document),
            "accountStatus": user_document.get("account_status", "open"),
            "emailVerified": bool(user_document.get("email_verified")),
            "verifiedAt": isoformat_utc(user_document.get("verified_at")),
        }

    def serialize_seller(seller_document) -> Dict[str, object]:
        if not seller_document:
            return {}

        return {
            "sellerId": seller_document.get("seller_id", ""),
            "name": seller_document.get("name", ""),
            "email": seller_document.get("email", ""),
            "phoneNumber": seller_document.get("phone_number", ""),
            "businessName": seller_document.get("business_name", ""),
            "businessAddress": seller_document.get("business_address", ""),
            "businessType": seller_document.get("business_type", ""),
            "emailVerified": bool(seller_document.get("email_verified")),
            "phoneVerified": bool(seller_document.get("phone_verified")),
            "accountStatus": seller_document.get("account_status", "active"),
            "loggedIn": seller_document.get("logged_in", "loggedout"),
            "createdAt": isoformat_utc(seller_document.get("created_at")),
        }

    def build_upload_url(filename: Optional[str]) -> str:
        if not filename:
            return ""

        sanitized = str(filename).strip()
        if not sanitized:
            return ""

        return urljoin(request.host_url, f"uploads/{sanitized}")

    def serialize_product(product_document) -> Dict[str, object]:
        if not product_document:
            return {}

        return {
            "id": str(product_document.get("_id")),
            "productId": product_document.get("product_id", ""),
            "name": product_document.get("name", ""),
            "price": product_document.get("price"),
            "category": product_document.get("category", ""),
            "description": product_document.get("description", ""),
            "rating": product_document.get("rating", 0),
            "inStockValue": product_document.get("in_stock_value", 0),
            "soldStockValue": product_document.get("sold_stock_value", 0),
            "visibility": product_document.get("visibility", "on"),
            "img": [
                build_upload_url(filename)
                for filename in product_document.get("image_filenames") or []
            ],
            "createdAt": isoformat_utc(product_document.get("created_at")),
        }

    def serialize_cart(cart_document) -> Dict[str, object]:
        if not cart_document:
            return {}

        return {
            "userId": cart_document.get("user_id"),
            "productsInCart": [
                {
                    "productId": entry.get("product_id"),
                    "quantity": entry.get("quantity"),
                }
                for entry in cart_document.get("products_in_cart") or []
            ],
        }

    def fetch_product(product_identifier):
        identifier = str(product_identifier or "").strip()
        if not identifier:
            return None

        product_document = db.products.find_one({"product_id": identifier})
        if product_document:
            return product_document

        object_id = normalize_object_id_value(identifier)
        if object_id is None:
            return None
        return db.products.find_one({"_id": object_id})

    def allowed_image_extension(filename: str) -> bool:
        extension = os.path.splitext(filename)[1].lower().lstrip(".")
        if not extension:
            return False
        return extension in app.config["PRODUCT_ALLOWED_EXTENSIONS"]

    def save_product_image(image_file):
        if not image_file or not getattr(image_file, "filename", ""):
            return None, "An image file is required."

        original_filename = secure_filename(image_file.filename)
        if not original_filename:
            return None, "Please choose a valid file name."

        if not allowed_image_extension(original_filename):
            return (
                None,
                "Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files.",
            )

        extension = os.path.splitext(original_filename)[1].lower()
        unique_filename = f"{uuid4().hex}{extension}"
        destination = os.path.join(
            app.config["PRODUCT_UPLOAD_FOLDER"], unique_filename
        )

        try:
            image_file.save(destination)
        except OSError:
            return None, "We could not store the uploaded image. Please try again."

        return unique_filename, None

    def remove_product_images(filenames: List[str]):
        for filename in filenames:
            target = os.path.join(app.config["PRODUCT_UPLOAD_FOLDER"], str(filename))
            try:
                os.remove(target)
            except OSError:
                continue

    def save_product_images(image_files):
        saved_filenames: List[str] = []
        for image_file in image_files or []:
            if not image_file or not getattr(image_file, "filename", ""):
                continue
            new_filename, image_error = save_product_image(image_file)
            if image_error:
                remove_product_images(saved_filenames)
                return [], image_error
            saved_filenames.append(new_filename)

        return saved_filenames, None

    # --- Error handlers ---

    @app.errorhandler(StoreError)
    def handle_store_error(exc: StoreError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", exc.message, exc.error)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(PyMongoError)
    def handle_storage_error(exc: PyMongoError):
        app.logger.error("Storage operation failed: %s", exc)
        return error_response("Storage operation failed.", 500, str(exc))

    # --- ROUTES ---

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    @app.route("/uploads/<path:filename>")
    def serve_uploaded_file(filename: str):
        return send_from_directory(app.config["PRODUCT_UPLOAD_FOLDER"], filename)

    # Customer accounts
    @app.route("/api/register", methods=["POST"])
    def register():
        payload = request.get_json(silent=True) or {}
        email = normalize_email(payload.get("email"))
        name = str(payload.get("name", "")).strip()
        password = str(payload.get("password", ""))
        phone = str(payload.get("phone", "")).strip()

        if not email or not name or not password:
            return error_response(
                "Email, name, and password are required to create an account.", 400
            )

        if not is_valid_email(email):
            return error_response("Please provide a valid email address.", 400)

        if db.users.find_one({"email": email}):
            return error_response("An account with this email already exists.", 400)

        hashed_pw = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
        user_document = {
            "email": email,
            "name": name,
            "password": hashed_pw,
            "phone": phone or "not available",
            "role": "admin" if email == default_admin_email else "standard",
            "account_status": "open",
            "email_verified": False,
            "created_at": datetime.utcnow(),
        }

        try:
            insert_result = db.users.insert_one(user_document)
        except DuplicateKeyError:
            return error_response("An account with this email already exists.", 400)

        otp_result = dispatch_verification_code(email)
        if not otp_result.get("success"):
            db.users.delete_one({"_id": insert_result.inserted_id})
            return error_response(
                "Account creation failed while sending the verification code. Please try again.",
                502,
                otp_result.get("error"),
            )

        return (
            jsonify(
                {
                    "success": True,
                    "message": "Account created. Enter the verification code we emailed to continue.",
                    "userId": str(insert_result.inserted_id),
                    "email": email,
                    "requires_verification": True,
                    "otp_length": otp_result.get("otp_length", otp_code_length),
                    "expires_in_seconds": otp_expiration_minutes * 60,
                }
            ),
            201,
        )

    @app.route("/send-otp", methods=["POST"])
    @app.route("/api/send-otp", methods=["POST"])
    def issue_email_verification_code():
        payload = request.get_json(silent=True) or {}
        email = normalize_email(payload.get("email"))

        if not is_valid_email(email):
            return error_response("Please provide a valid email address.", 400)

        result = dispatch_verification_code(email)
        if not result.get("success"):
            return error_response(
                "We could not send the verification email. Please try again in a moment.",
                502,
                result.get("error"),
            )

        expires_at = result.get("expires_at")
        return jsonify(
            {
                "success": True,
                "message": "Verification code sent.",
                "email": email,
                "expires_in_seconds": otp_expiration_minutes * 60,
                "otp_length": result.get("otp_length", otp_code_length),
                "expires_at": isoformat_utc(expires_at),
            }
        )

    @app.route("/verify-otp", methods=["POST"])
    @app.route("/api/verify-otp", methods=["POST"])
    def verify_email_otp():
        payload = request.get_json(silent=True) or {}
        email = normalize_email(payload.get("email"))
        otp = str(payload.get("otp", "")).strip()

        if not is_valid_email(email):
            return error_response("Please provide a valid email address.", 400)

        if not (otp.isdigit() and len(otp) == otp_code_length):
            return error_response(
                f"The verification code must be {otp_code_length} digits.", 400
            )

        code_record = email_verification_collection.find_one({"email": email})
        if not code_record:
            return error_response(
                "No verification request found for this email. Please request a new code.",
                400,
            )

        expires_at = code_record.get("expires_at")
        if not expires_at or expires_at < datetime.utcnow():
            email_verification_collection.delete_one({"_id": code_record["_id"]})
            return error_response(
                "The verification code has expired. Please request a new one.", 400
            )

        stored_hash = code_record.get("otp_hash")
        if not stored_hash or not bcrypt.checkpw(otp.encode("utf-8"), stored_hash):
            failed_attempts = int(code_record.get("failed_attempts", 0) or 0) + 1
            if failed_attempts >= max_failed_otp_attempts:
                email_verification_collection.delete_one({"_id": code_record["_id"]})
                return error_response(
                    "Too many incorrect attempts. Please request a new verification code.",
                    400,
                )

            email_verification_collection.update_one(
                {"_id": code_record["_id"]},
                {"$set": {"failed_attempts": failed_attempts}},
            )
            return error_response("The verification code is incorrect.", 400)

        email_verification_collection.delete_one({"_id": code_record["_id"]})

        verified_at = datetime.utcnow()
        update_result = db.users.update_one(
            {"email": email},
            {"$set": {"email_verified": True, "verified_at": verified_at}},
        )
        if update_result.matched_count == 0:
            app.logger.warning(
                "OTP verified for %s but no matching user record was updated.", email
            )

        return jsonify(
            {
                "success": True,
                "message": "Email verified successfully.",
                "verified": True,
                "verified_at": isoformat_utc(verified_at),
            }
        )

    @app.route("/api/login", methods=["POST"])
    def login():
        payload = request.get_json(silent=True) or {}
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password", ""))

        if not email or not password:
            return error_response("Email and password are required.", 400)

        user = db.users.find_one({"email": email})
        if not user or not bcrypt.checkpw(password.encode("utf-8"), user["password"]):
            return error_response("Invalid credentials", 401)

        if user.get("email_verified") is False:
            return (
                jsonify(
                    {
                        "success": False,
                        "message": "Please verify your email before logging in.",
                        "requires_verification": True,
                    }
                ),
                403,
            )

        db.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"last_login_at": datetime.utcnow()}},
        )

        token = create_access_token(
            identity=email, additional_claims={"account_type": "user"}
        )
        return jsonify(
            {
                "success": True,
                "access_token": token,
                "user": serialize_user_profile(user),
            }
        )

    # Sellers
    @app.route("/seller/signup", methods=["POST"])
    @app.route("/api/seller/signup", methods=["POST"])
    def seller_signup():
        payload = request.get_json(silent=True) or {}
        email = normalize_email(payload.get("emailId") or payload.get("email"))
        phone_number = str(payload.get("phoneNumber", "")).strip()
        password = str(payload.get("password", ""))

        if not email or not password:
            return error_response("Email and password are required.", 400)

        if not is_valid_email(email):
            return error_response("Please provide a valid email address.", 400)

        if db.sellers.find_one({"email": email}):
            return error_response("Seller already exists", 400)

        seller_id = generate_seller_id()
        verification_token = secrets.token_hex(32)
        seller_document = {
            "seller_id": seller_id,
            "name": PLACEHOLDER_VALUE,
            "email": email,
            "password": bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()),
            "phone_number": phone_number,
            "business_name": PLACEHOLDER_VALUE,
            "business_address": PLACEHOLDER_VALUE,
            "business_type": PLACEHOLDER_VALUE,
            "email_verified": False,
            "phone_verified": False,
            "verification_token": verification_token,
            "account_status": "active",
            "logged_in": "loggedout",
            "created_at": datetime.utcnow(),
        }

        try:
            insert_result = db.sellers.insert_one(seller_document)
        except DuplicateKeyError:
            return error_response("Seller already exists", 400)

        verification_link = (
            f"{app.config['BASE_URL'].rstrip('/')}/verify-email?token={verification_token}"
        )
        sent, error_details = send_email(
            build_seller_verification_email(mail_sender, email, verification_link)
        )
        if not sent:
            db.sellers.delete_one({"_id": insert_result.inserted_id})
            app.logger.error(
                "Seller verification email failed for %s: %s", email, error_details
            )
            return error_response(
                "Error registering seller", 502, error_details or "Email delivery failed."
            )

        return (
            jsonify(
                {
                    "success": True,
                    "message": "Seller registered successfully. Verify your email.",
                    "sellerId": seller_id,
                }
            ),
            201,
        )

    @app.route("/verify-email", methods=["GET"])
    @app.route("/api/seller/verify-email", methods=["GET"])
    def verify_seller_email():
        token = (request.args.get("token") or "").strip()
        seller = db.sellers.find_one({"verification_token": token}) if token else None
        if not seller:
            return error_response("Invalid or expired token", 400)

        db.sellers.update_one(
            {"_id": seller["_id"]},
            {"$set": {"email_verified": True, "verification_token": None}},
        )
        return jsonify({"success": True, "message": "Email verified successfully"})

    @app.route("/api/seller/login", methods=["POST"])
    def seller_login():
        payload = request.get_json(silent=True) or {}
        seller_id = str(payload.get("sellerId", "")).strip()
        email_or_phone = str(payload.get("emailOrPhone", "")).strip()
        password = str(payload.get("password", ""))

        if not seller_id or not email_or_phone or not password:
            return error_response(
                "Missing required fields",
                400,
                "Seller ID, email/phone, and password are required",
            )

        seller = db.sellers.find_one(
            {
                "seller_id": seller_id,
                "$or": [
                    {"email": normalize_email(email_or_phone)},
                    {"phone_number": email_or_phone},
                ],
            }
        )
        if not seller:
            return error_response(
                "Invalid credentials",
                400,
                "No seller found with provided ID and email/phone",
            )

        if not seller.get("email_verified") and not seller.get("phone_verified"):
            return error_response(
                "Account not verified",
                401,
                "Please verify your email or phone number before logging in",
            )

        if not bcrypt.checkpw(password.encode("utf-8"), seller["password"]):
            return error_response(
                "Invalid credentials", 400, "Incorrect password provided"
            )

        if seller.get("account_status") == "blocked":
            return error_response("This seller account has been blocked.", 403)

        db.sellers.update_one(
            {"_id": seller["_id"]}, {"$set": {"logged_in": "loggedin"}}
        )

        token = create_access_token(
            identity=seller_id, additional_claims={"account_type": "seller"}
        )
        return jsonify(
            {
                "success": True,
                "message": "Login successful",
                "sellerId": seller_id,
                "access_token": token,
            }
        )

    @app.route("/verify-seller", methods=["POST"])
    @app.route("/api/seller/verify", methods=["POST"])
    def verify_seller():
        payload = request.get_json(silent=True) or {}
        seller_id = str(payload.get("sellerId", "")).strip()

        if not seller_id:
            return error_response("Seller ID is required", 400)

        seller = db.sellers.find_one({"seller_id": seller_id})
        if not seller:
            return error_response("Invalid seller ID", 404)

        return jsonify(
            {
                "success": True,
                "message": "Valid seller ID",
                "loggedIn": seller.get("logged_in", "loggedout"),
            }
        )

    @app.route("/api/seller/logout", methods=["POST"])
    def seller_logout():
        payload = request.get_json(silent=True) or {}
        seller_id = str(payload.get("sellerId", "")).strip()

        if not seller_id:
            return error_response("Seller ID is required", 400)

        result = db.sellers.update_one(
            {"seller_id": seller_id}, {"$set": {"logged_in": "loggedout"}}
        )
        if result.matched_count == 0:
            return error_response("Seller not found", 404)

        return jsonify(
            {
                "success": True,
                "message": "Seller logged out successfully",
                "loggedIn": "loggedout",
            }
        )

    # --- Admin Routes ---

    @app.route("/admin/sellers", methods=["GET"])
    @app.route("/api/admin/sellers", methods=["GET"])
    @jwt_required()
    def list_sellers():
        _, _, admin_error = require_role("admin")
        if admin_error:
            return admin_error

        sellers = [
            serialize_seller(document)
            for document in db.sellers.find({}, {"password": 0, "verification_token": 0})
        ]
        return jsonify({"success": True, "sellers": sellers})

    @app.route("/admin/seller/<seller_id>/block", methods=["POST"])
    @app.route("/api/admin/sellers/<seller_id>/block", methods=["POST"])
    @jwt_required()
    def toggle_seller_block(seller_id: str):
        _, _, admin_error = require_role("admin")
        if admin_error:
            return admin_error

        seller = db.sellers.find_one({"seller_id": seller_id})
        if not seller:
            return error_response("Seller not found", 404)

        new_status = "active" if seller.get("account_status") == "blocked" else "blocked"
        db.sellers.update_one(
            {"_id": seller["_id"]}, {"$set": {"account_status": new_status}}
        )
        return jsonify(
            {
                "success": True,
                "message": f"Seller {new_status}",
                "accountStatus": new_status,
            }
        )

    @app.route("/admin/seller/<seller_id>", methods=["DELETE"])
    @app.route("/api/admin/sellers/<seller_id>", methods=["DELETE"])
    @jwt_required()
    def delete_seller(seller_id: str):
        _, _, admin_error = require_role("admin")
        if admin_error:
            return admin_error

        seller = db.sellers.find_one_and_delete({"seller_id": seller_id})
        if not seller:
            return error_response("Seller not found", 404)

        return jsonify({"success": True, "message": "Seller account deleted"})

    # Products
    @app.route("/api/products", methods=["GET"])
    def list_products():
        product_docs = db.products.find({"visibility": {"$ne": "off"}}).sort(
            "created_at", -1
        )
        return jsonify(
            {
                "success": True,
                "products": [serialize_product(document) for document in product_docs],
            }
        )

    @app.route("/api/products/<product_id>", methods=["GET"])
    def get_product(product_id: str):
        product_document = fetch_product(product_id)
        if not product_document:
            return error_response("Product not found.", 404)

        return jsonify({"success": True, "product": serialize_product(product_document)})

    @app.route("/add-product", methods=["POST"])
    @app.route("/api/products", methods=["POST"])
    @jwt_required()
    def create_product():
        current_account, role, permission_error = require_role("seller", "admin")
        if permission_error:
            return permission_error

        payload = request.form.to_dict() if request.form else {}
        name = str(payload.get("name", "")).strip()
        category = str(payload.get("category", "")).strip()
        description = str(payload.get("description", "")).strip()

        if not name:
            return error_response("A product name is required.", 400)

        price_value = safe_float(payload.get("price"), None)
        if price_value is None:
            return error_response("Price must be a valid number.", 400)
        price_value = round(price_value, 2)

        if price_value <= 0:
            return error_response("Price must be greater than zero.", 400)

        image_files = request.files.getlist("images") if request.files else []
        if len(image_files) > MAX_PRODUCT_IMAGES:
            return error_response(
                f"You can upload up to {MAX_PRODUCT_IMAGES} images per product.", 400
            )

        saved_filenames, image_error = save_product_images(image_files)
        if image_error:
            return error_response(image_error, 400)

        if not saved_filenames:
            return error_response(
                "Please upload at least one image for this product.", 400
            )

        creator = (
            current_account.get("seller_id")
            if role == "seller"
            else normalize_email(current_account.get("email"))
        )
        product_document = {
            "product_id": uuid4().hex,
            "name": name,
            "price": price_value,
            "category": category,
            "description": description,
            "in_stock_value": safe_positive_int(payload.get("inStockValue"), 0),
            "sold_stock_value": 0,
            "rating": 0,
            "visibility": "on",
            "image_filenames": saved_filenames,
            "created_by": creator,
            "created_at": datetime.utcnow(),
        }

        try:
            insert_result = db.products.insert_one(product_document)
        except PyMongoError:
            remove_product_images(saved_filenames)
            raise
        product_document["_id"] = insert_result.inserted_id

        return (
            jsonify(
                {
                    "success": True,
                    "message": "Product added successfully.",
                    "product": serialize_product(product_document),
                }
            ),
            201,
        )

    @app.route("/add-product-description", methods=["POST"])
    @app.route("/api/products/description", methods=["POST"])
    def add_product_description():
        payload = request.get_json(silent=True) or {}
        product_id = str(payload.get("productId", "")).strip()
        description = str(payload.get("description", "")).strip()

        if not product_id or not description:
            return error_response("Product ID and description are required.", 400)

        product_document = fetch_product(product_id)
        if not product_document:
            return error_response("Product not found.", 404)

        db.products.update_one(
            {"_id": product_document["_id"]}, {"$set": {"description": description}}
        )
        product_document["description"] = description

        return jsonify(
            {
                "success": True,
                "message": "Product description added successfully.",
                "product": serialize_product(product_document),
            }
        )

    # Cart
    @app.route("/addtocart", methods=["POST"])
    @app.route("/api/cart/add", methods=["POST"])
    def add_to_cart():
        payload = request.get_json(silent=True) or {}
        user_id = str(payload.get("userId", "")).strip()
        product_id = str(payload.get("productId", "")).strip()
        quantity = safe_positive_int(payload.get("quantity"), 1) or 1

        if not user_id or not product_id:
            return error_response("userId and productId are required.", 400)

        db.carts.update_one(
            {"user_id": user_id},
            {
                "$push": {
                    "products_in_cart": {"product_id": product_id, "quantity": quantity}
                },
                "$set": {"updated_at": datetime.utcnow()},
            },
            upsert=True,
        )
        cart = db.carts.find_one({"user_id": user_id})

        return jsonify(
            {
                "success": True,
                "message": "Product added to cart successfully",
                "cart": serialize_cart(cart),
            }
        )

    @app.route("/get-cart", methods=["POST"])
    @app.route("/api/cart", methods=["POST"])
    def get_cart():
        payload = request.get_json(silent=True) or {}
        user_id = str(payload.get("userId", "")).strip()

        if not user_id:
            return error_response("userId is required.", 400)

        cart = db.carts.find_one({"user_id": user_id})
        if not cart:
            return error_response("Cart not found for this user", 404)

        return jsonify({"success": True, "cart": serialize_cart(cart)})

    @app.route("/update-quantity", methods=["PUT"])
    @app.route("/api/cart/quantity", methods=["PUT"])
    def update_cart_quantity():
        payload = request.get_json(silent=True) or {}
        user_id = str(payload.get("userId", "")).strip()
        product_id = str(payload.get("productId", "")).strip()
        product_qty = payload.get("productQty")

        if not user_id or not product_id or not is_number(product_qty):
            return error_response(
                "userId, productId, and a valid productQty are required.", 400
            )

        cart = db.carts.find_one({"user_id": user_id})
        if not cart:
            return error_response("Cart not found.", 404)

        if not any(
            entry.get("product_id") == product_id
            for entry in cart.get("products_in_cart") or []
        ):
            return error_response("Product not found in the cart.", 404)

        db.carts.update_one(
            {"user_id": user_id, "products_in_cart.product_id": product_id},
            {
                "$set": {
                    "products_in_cart.$.quantity": product_qty,
                    "updated_at": datetime.utcnow(),
                }
            },
        )

        return jsonify({"success": True, "message": "Quantity updated successfully."})

    @app.route("/delete-items", methods=["POST"])
    @app.route("/api/cart/delete-items", methods=["POST"])
    def delete_cart_item():
        payload = request.get_json(silent=True) or {}
        user_id = str(payload.get("userId", "")).strip()
        product_id = str(payload.get("productId", "")).strip()

        if not user_id or not product_id:
            return error_response("userId and productId are required.", 400)

        result = db.carts.update_one(
            {"user_id": user_id},
            {"$pull": {"products_in_cart": {"product_id": product_id}}},
        )
        if result.modified_count == 0:
            return error_response("Item not found in the cart.", 404)

        return jsonify({"success": True, "message": "Item deleted successfully."})

    # Orders
    @app.route("/place-order", methods=["POST"])
    @app.route("/api/orders/place", methods=["POST"])
    def place_order():
        payload = request.get_json(silent=True) or {}

        result = order_service.place_order(
            payload.get("userId"),
            payload.get("date"),
            payload.get("time"),
            payload.get("address"),
            payload.get("price"),
            payload.get("productsOrdered"),
        )

        return jsonify(
            {
                "success": True,
                "message": "Order placed successfully",
                "orderId": result["order_id"],
                "trackingId": result["tracking_id"],
                "finalTotal": result["final_total"],
            }
        )

    @app.route("/api/orders/user/<user_id>", methods=["GET"])
    def list_user_orders(user_id: str):
        return jsonify({"success": True, "orders": order_service.list_orders(user_id)})

    # Coupons
    @app.route("/get-coupon", methods=["GET"])
    @app.route("/api/coupons", methods=["GET"])
    def get_coupons():
        return jsonify({"success": True, "coupons": list_coupons(db.coupons)})

    @app.route("/save-coupon", methods=["POST"])
    @app.route("/api/coupons", methods=["POST"])
    @jwt_required()
    def save_coupon():
        _, _, admin_error = require_role("admin")
        if admin_error:
            return admin_error

        payload = request.get_json(silent=True) or {}
        code = normalize_coupon_code(payload.get("code"))
        discount_percentage = payload.get("discountPercentage")
        raw_expiry = payload.get("expiryDate")
        expiry_date = parse_iso_date(raw_expiry)

        if not code:
            return error_response("A coupon code is required.", 400)

        if not is_number(discount_percentage) or not 0 < discount_percentage <= 100:
            return error_response(
                "discountPercentage must be a number between 0 and 100.", 400
            )

        if expiry_date is None:
            return error_response("expiryDate must be a valid ISO date.", 400)

        if db.coupons.find_one({"code": code}):
            return error_response("Coupon code already exists", 400)

        coupon_document = {
            "code": code,
            "discount_percentage": discount_percentage,
            "expiry_date": expiry_date,
            "created_at": datetime.utcnow(),
        }
        try:
            insert_result = db.coupons.insert_one(coupon_document)
        except DuplicateKeyError:
            return error_response("Coupon code already exists", 400)
        coupon_document["_id"] = insert_result.inserted_id

        broadcast_to_users(
            "New Coupon Available!",
            f"A new coupon {code} is now available with {discount_percentage}% discount. "
            f"Use it before {raw_expiry}!",
        )

        return (
            jsonify(
                {
                    "success": True,
                    "message": "Coupon saved successfully",
                    "coupon": serialize_coupon(coupon_document),
                }
            ),
            201,
        )

    @app.route("/apply-coupon", methods=["POST"])
    @app.route("/api/coupons/apply", methods=["POST"])
    def apply_coupon_route():
        payload = request.get_json(silent=True) or {}
        result = apply_coupon(db.coupons, payload.get("code"), payload.get("cartTotal"))

        return jsonify(
            {
                "success": True,
                "discount": result["discount"],
                "finalTotal": result["final_total"],
            }
        )

    @app.route("/verify-coupon", methods=["POST"])
    @app.route("/api/coupons/verify", methods=["POST"])
    def verify_coupon():
        payload = request.get_json(silent=True) or {}
        coupon = db.coupons.find_one({"code": normalize_coupon_code(payload.get("code"))})
        if not coupon:
            return error_response("Invalid coupon code", 404)

        return jsonify({"success": True, "coupon": serialize_coupon(coupon)})

    @app.route("/delete-coupon", methods=["DELETE"])
    @app.route("/api/coupons", methods=["DELETE"])
    @jwt_required()
    def delete_coupon():
        _, _, admin_error = require_role("admin")
        if admin_error:
            return admin_error

        payload = request.get_json(silent=True) or {}
        code = normalize_coupon_code(payload.get("code"))

        deleted_coupon = db.coupons.find_one_and_delete({"code": code}) if code else None
        if not deleted_coupon:
            return error_response("Coupon not found", 404)

        broadcast_to_users(
            "Coupon Expired",
            f"The coupon {code} has expired and is no longer valid.",
        )

        return jsonify({"success": True, "message": "Coupon deleted successfully"})

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port)
