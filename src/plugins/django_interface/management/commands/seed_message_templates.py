from django.core.management.base import BaseCommand
from django.db import transaction

from notification_engine.core.application.services.default_templates import DEFAULT_TEMPLATES
from plugins.django_interface.models import MessageTemplate


class Command(BaseCommand):
    help = "Popula a tabela de templates ativos a partir dos textos padrão (um por categoria e canal)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            default=False,
            help="Substitui o conteúdo dos templates ativos já existentes",
        )

    @transaction.atomic
    def handle(self, *args, **opts):
        created = updated = 0
        for (category, channel), content in DEFAULT_TEMPLATES.items():
            tpl = MessageTemplate.objects.filter(category=category.value, channel=channel.value, is_active=True).first()
            if tpl is None:
                MessageTemplate.objects.create(
                    category=category.value,
                    channel=channel.value,
                    subject=content.get("subject"),
                    body=content["body"],
                    is_active=True,
                )
                created += 1
            elif opts["overwrite"]:
                tpl.subject = content.get("subject")
                tpl.body = content["body"]
                tpl.save(update_fields=["subject", "body", "updated_at"])
                updated += 1

        self.stdout.write(self.style.SUCCESS(f"Templates criados: {created}, atualizados: {updated}"))
