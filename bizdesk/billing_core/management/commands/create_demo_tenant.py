import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from billing_core.models import Client, Company, EntityMembership
from billing_core.services.documents import (convert_quote_to_invoice,
                                             create_quote)
from billing_core.services.payment import apply_payment
from billing_core.services.status import transition_quote_status

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), owner user, client and a sample "
        "quote → invoice → partial payment flow."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # Generate unique slug for company
        def unique_slug_for_company(name, max_tries=100):
            # Convert company name into a slug (e.g., "Test Ltd" → "test-ltd")
            base = slugify(name) or "company"
            slug = base
            i = 1
            # If plain slug is taken, append -1, -2, etc.
            while Company.objects.filter(slug=slug).exists():
                slug = f"{base}-{i}"
                i += 1
                if i > max_tries:
                    raise RuntimeError("Couldn't generate unique slug")
            return slug

        # 1. Create company
        company = Company.objects.filter(name=company_name).first()
        if company is None:
            company = Company.objects.create(
                name=company_name, slug=unique_slug_for_company(company_name))
        self.stdout.write(self.style.SUCCESS(f"Company: {company}"))

        # 2. Create user + owner membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com", "is_staff": True},
        )
        if created:  # if user newly created
            user.set_password(password)
            user.save()
        if company.owner_id is None:
            company.owner = user
            company.save()
        EntityMembership.objects.get_or_create(
            user=user,
            company=company,
            defaults={
                "role": "owner",
                # first membership becomes the default company
                "is_default": not user.memberships.filter(
                    is_default=True).exists(),
            },
        )
        self.stdout.write(
            self.style.SUCCESS(f"User: {user.username} (pw={password}), owner")
        )

        # 3. Client
        client, _ = Client.objects.get_or_create(
            company=company,
            name="Demo Client",
            defaults={
                "company_name": "Demo Client LLC",
                "email": "client@example.com",
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Client: {client}"))

        # 4. Quote: draft → sent → invoice
        today = timezone.localdate()
        quote = create_quote(
            company,
            client,
            [
                {"description": "Installation", "quantity": "1",
                 "unit_price": "250.00"},
                {"description": "Equipment", "quantity": "2",
                 "unit_price": "120.50"},
            ],
            discount_percent="5",
            valid_until=today + datetime.timedelta(days=15),
            user=user,
        )
        transition_quote_status(quote, "SENT", user=user)
        self.stdout.write(self.style.SUCCESS(f"Quote: {quote.number}"))

        invoice = convert_quote_to_invoice(quote, type="EQUIPMENT", user=user)
        self.stdout.write(
            self.style.SUCCESS(f"Invoice: {invoice.number} total {invoice.total:.2f}")
        )

        # 5. Partial payment, invoice stays PENDING
        invoice, payment = apply_payment(
            invoice, Decimal("100.00"), method="TRANSFER", user=user)
        self.stdout.write(
            self.style.SUCCESS(
                f"Payment {payment.amount:.2f}, balance {invoice.balance:.2f}")
        )
        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
