from django.template import Context, Template


def render_message(template_str: str, context: dict) -> str:
    """
    Renderiza um template de texto com placeholders no formato {{ var }}
    substituindo-os pelos valores do dicionário context.

    As mensagens são texto puro (WhatsApp / e-mail text/plain), por isso
    o autoescape de HTML fica desligado.

    Exemplo:
        template = "Hola {{ patientName }}, tu turno es el {{ date }}"
        ctx = {"patientName": "María Pérez", "date": "lunes, 10/03/2025"}
        output = render_message(template, ctx)
    """
    tpl = Template(template_str)
    ctx = Context(context, autoescape=False)
    return tpl.render(ctx)
