from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('verification', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='clientverificationstate',
            name='submission_started_at',
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
